"""Write one synthetic proof in every supported artifact encoding.

    python tools/make_proof_fixtures.py OUT_DIR [--size N] [--seed S]

Produces proof.b64, proof.hex, proof.json (byte array) and proof.bin.hex
(expected decoded bytes as 0x-hex) for exercising `solrelay-verify decode`.
"""
import base64
import json
import random
import sys
from pathlib import Path


def generate_fixtures(out_dir: str, size: int = 777, seed: int = 7) -> Path:
    rng = random.Random(seed)
    proof = bytes(rng.randrange(256) for _ in range(size))

    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    (out / "proof.b64").write_text(base64.b64encode(proof).decode("ascii") + "\n", encoding="utf-8")
    (out / "proof.hex").write_text("0x" + proof.hex() + "\n", encoding="utf-8")
    (out / "proof.json").write_text(json.dumps(list(proof)) + "\n", encoding="utf-8")
    (out / "proof.bin.hex").write_text("0x" + proof.hex(), encoding="utf-8")

    print(f"GENERATED: {out} ({size} bytes)")
    return out


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if a]

    def pop_option(arg_list: list[str], name: str, default: int) -> tuple[int, list[str]]:
        """Remove an integer option from an argv-style list."""
        if name not in arg_list:
            return default, arg_list
        i = arg_list.index(name)
        if i + 1 >= len(arg_list):
            raise SystemExit(f"{name} requires a value")
        return int(arg_list[i + 1]), arg_list[:i] + arg_list[i + 2:]

    size, args = pop_option(args, "--size", 777)
    seed, args = pop_option(args, "--seed", 7)
    generate_fixtures(args[0] if args else "proof_fixtures", size=size, seed=seed)
