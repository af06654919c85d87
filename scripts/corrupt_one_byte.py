import sys
from pathlib import Path


def main():
    if len(sys.argv) != 3:
        print("Usage: corrupt_one_byte.py <binary> <payload_offset>")
        raise SystemExit(2)

    p = Path(sys.argv[1])
    offset = int(sys.argv[2])
    b = bytearray(p.read_bytes())
    if offset < 2 or offset > len(b):
        print(f"Offset {offset} outside {p} ({len(b)} bytes).")
        raise SystemExit(2)

    # Flip the byte just before the closing ':' of the tag header,
    # i.e. the last character of the role name.
    idx = offset - 2
    b[idx] ^= 0x01
    p.write_bytes(bytes(b))
    print(f"Corrupted 1 byte at offset {idx} in {p}")


if __name__ == "__main__":
    main()
