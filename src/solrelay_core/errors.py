"""Error taxonomy shared by every relay stage.

Each error carries a stable ``code`` so command-line tools can report failures
as ``{"code", "message", "detail"}`` records.
"""
from __future__ import annotations

ERRORS = {
    "E_TRANSIENT": "Transient network fault",
    "E_SERVICE": "Remote service reported a failure",
    "E_TIMEOUT": "Attempt budget exhausted while still pending",
    "E_PROTOCOL_MISMATCH": "Record already in the requested state",
    "E_LEDGER_SUBMIT": "Source ledger transaction failed",
    "E_UPLOAD_ABORTED": "Proof chunk upload aborted",
    "E_VALIDATION": "On-chain proof validation failed",
    "E_MALFORMED_PROOF": "Verifier rejected the proof format or validity",
    "E_REVERTED": "Verifier call reverted",
    "E_PROOF_FORMAT": "Proof artifact could not be decoded",
}


class RelayError(Exception):
    code = "E_SERVICE"

    def __init__(self, message: str, logs: list[str] | None = None):
        super().__init__(message)
        self.logs = list(logs or [])

    def as_record(self) -> dict:
        rec = {"code": self.code, "message": ERRORS[self.code], "detail": str(self)}
        if self.logs:
            rec["logs"] = self.logs
        return rec


class TransientNetworkFault(RelayError):
    """Connection refused, reset or timed out, or a node that cannot serve a read yet.

    Retried only where polling occurs.
    """

    code = "E_TRANSIENT"


class ServiceError(RelayError):
    """The remote side explicitly reported failure. Never retried."""

    code = "E_SERVICE"


class MalformedProofError(ServiceError):
    code = "E_MALFORMED_PROOF"


class RevertedCallError(ServiceError):
    code = "E_REVERTED"


class ProofTimeoutError(RelayError):
    code = "E_TIMEOUT"

    def __init__(self, job_id: str, attempts: int):
        super().__init__(f"Proof generation for job {job_id} timed out after {attempts} attempts")
        self.job_id = job_id
        self.attempts = attempts


class ProtocolMismatchError(RelayError):
    """Benign by convention: callers log it and continue."""

    code = "E_PROTOCOL_MISMATCH"


class LedgerSubmissionError(RelayError):
    code = "E_LEDGER_SUBMIT"


class UploadAborted(RelayError):
    code = "E_UPLOAD_ABORTED"

    def __init__(self, index: int, total: int, message: str, logs: list[str] | None = None):
        super().__init__(f"Chunk {index + 1}/{total} failed: {message}", logs)
        self.index = index
        self.total = total


class ValidationError(RelayError):
    """Terminal for the job; validation is never retried automatically."""

    code = "E_VALIDATION"


class ProofFormatError(RelayError):
    code = "E_PROOF_FORMAT"
