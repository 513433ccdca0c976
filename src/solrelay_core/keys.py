import json
from pathlib import Path

from nacl.signing import SigningKey
from solders.keypair import Keypair


def load_keypair(path: Path) -> Keypair:
    """Load a Solana CLI keypair file (JSON array of 64 ints: seed || public key)."""
    try:
        raw = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ValueError(f"Keypair file not found: {path}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Keypair file is not JSON: {path} ({e})")

    if not isinstance(raw, list) or len(raw) != 64 or not all(isinstance(b, int) and 0 <= b < 256 for b in raw):
        raise ValueError(f"Keypair file must hold a JSON array of 64 bytes: {path}")

    secret = bytes(raw)
    # The public half must be the ed25519 key of the seed half.
    if bytes(SigningKey(secret[:32]).verify_key) != secret[32:]:
        raise ValueError(f"Keypair public key does not match its secret seed: {path}")
    return Keypair.from_bytes(secret)
