import base64
import sys
from pathlib import Path

def main():
    if len(sys.argv) != 2:
        print("Usage: corrupt_proof.py <proof-file>")
        raise SystemExit(2)

    p = Path(sys.argv[1])
    b = bytearray(base64.b64decode(p.read_text(encoding="utf-8").strip()))
    if len(b) < 64:
        print("Proof too small to corrupt safely.")
        raise SystemExit(2)

    # Flip one byte in the middle of the proof body so the verifier must reject it.
    idx = len(b) // 2
    b[idx] ^= 0x01
    p.write_text(base64.b64encode(bytes(b)).decode("ascii"), encoding="utf-8")
    print(f"Corrupted 1 byte at offset {idx} in {p}")

if __name__ == "__main__":
    main()
