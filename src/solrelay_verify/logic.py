from pathlib import Path

from solrelay_core.errors import ERRORS, ProofFormatError, RelayError

from .encodings import ProofEncoding, decode_proof, guess_encoding
from .evm import CrossChainVerifier

AUTO = "auto"


def _fail(errors: list[dict]) -> dict:
    return {"status": "FAIL", "error_count": len(errors), "errors": errors}


def load_proof(path: Path, encoding: str) -> bytes:
    try:
        text = Path(path).read_text(encoding="utf-8").strip()
    except UnicodeDecodeError as e:
        raise ProofFormatError(f"Proof file is not UTF-8 text: {e}")
    enc = guess_encoding(text) if encoding == AUTO else ProofEncoding(encoding)
    return decode_proof(text, enc)


def verify_proof_file(path: Path, encoding: str, verifier: CrossChainVerifier) -> dict:
    if not Path(path).is_file():
        return _fail([{"code": "E_PROOF_FORMAT", "message": ERRORS["E_PROOF_FORMAT"], "detail": f"Proof file not found: {path}"}])
    try:
        proof = load_proof(path, encoding)
    except ProofFormatError as e:
        return _fail([e.as_record()])

    try:
        result = verifier.verify(proof)
    except RelayError as e:
        return _fail([e.as_record()])

    out = {"status": "PASS", "error_count": 0, "errors": []}
    out.update(result.as_dict())
    return out
