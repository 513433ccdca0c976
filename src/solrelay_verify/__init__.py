"""solrelay verify - Destination-chain proof verification."""
from .encodings import ProofEncoding, decode_proof, guess_encoding
from .evm import CrossChainVerifier, VerificationResult

__all__ = ["ProofEncoding", "decode_proof", "guess_encoding", "CrossChainVerifier", "VerificationResult"]
