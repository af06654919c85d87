"""zbin relocate - Install-time patching of relocatable zsh trees."""
from .relocate import RelocationResult, relocate

__all__ = ["RelocationResult", "relocate"]
