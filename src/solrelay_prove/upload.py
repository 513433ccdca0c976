"""Ordered proof upload into the on-chain cache record, and its validation.

The cache only reassembles correctly when chunks land in original order, and
the ledger gives no atomicity across transactions. The uploader therefore
submits one chunk per transaction, waits for confirmation and then pauses
before the next chunk. Progress is kept in an UploadCursor, together with the
signature of the chunk in flight, so an interrupted upload resumes after the
last confirmed chunk without resending one that already landed.
"""
from __future__ import annotations

import hashlib
import json
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable

import structlog
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from solrelay_core.errors import LedgerSubmissionError, UploadAborted, ValidationError
from solrelay_core.ids import as_pubkey, cache_address, internal_address
from solrelay_core.ledger import LANDED
from solrelay_core.protocol import (
    COMPUTE_UNIT_LIMIT,
    COMPUTE_UNIT_PRICE,
    INTER_TX_DELAY,
    SYSVAR_INSTRUCTIONS_ID,
    VALIDATE_PROOF_DISCRIMINATOR,
)

from .chunks import ProofChunk, encode_chunk_instruction

log = structlog.get_logger(__name__)


def proof_digest(chunks: list[ProofChunk]) -> str:
    h = hashlib.sha256()
    for c in chunks:
        h.update(c.data)
    return h.hexdigest()


@dataclass
class UploadCursor:
    digest: str
    total: int
    confirmed: int = 0
    signatures: list[str] = field(default_factory=list)
    # Signature of the chunk transaction sent but not yet confirmed.
    pending: str | None = None

    @classmethod
    def load(cls, path: Path) -> "UploadCursor | None":
        if not path.exists():
            return None
        return cls(**json.loads(path.read_text(encoding="utf-8")))

    def save(self, path: Path) -> None:
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(json.dumps(asdict(self), sort_keys=True), encoding="utf-8")
        tmp.replace(path)


@dataclass(frozen=True)
class UploadReport:
    cache: str
    total: int
    resumed_from: int
    signatures: list[str]
    bytes_uploaded: int


class ChunkUploader:
    def __init__(
        self,
        ledger,
        signer: Keypair,
        relay_program: str | Pubkey,
        prover_program: str | Pubkey,
        cursor_path: Path | None = None,
        delay: float = INTER_TX_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.ledger = ledger
        self.signer = signer
        self.relay_program = as_pubkey(relay_program)
        self.prover_program = as_pubkey(prover_program)
        self.cursor_path = Path(cursor_path) if cursor_path else None
        self.delay = delay
        self.sleep = sleep
        self.cache = cache_address(signer.pubkey(), self.prover_program)

    def instruction(self, chunk: ProofChunk) -> Instruction:
        return Instruction(
            self.relay_program,
            encode_chunk_instruction(chunk),
            [
                AccountMeta(self.prover_program, is_signer=False, is_writable=False),
                AccountMeta(self.cache, is_signer=False, is_writable=True),
                AccountMeta(self.signer.pubkey(), is_signer=True, is_writable=True),
                AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            ],
        )

    def _open_cursor(self, chunks: list[ProofChunk]) -> UploadCursor:
        digest = proof_digest(chunks)
        if self.cursor_path is not None:
            prev = UploadCursor.load(self.cursor_path)
            if prev is not None and prev.digest == digest and prev.total == len(chunks):
                log.info("upload.resume", confirmed=prev.confirmed, total=prev.total)
                if prev.pending is not None:
                    self._settle_pending(prev)
                return prev
            if prev is not None:
                log.warning("upload.cursor_reset", reason="cursor belongs to a different proof")
        return UploadCursor(digest=digest, total=len(chunks))

    def _persist(self, cursor: UploadCursor) -> None:
        if self.cursor_path is not None:
            cursor.save(self.cursor_path)

    def _settle_pending(self, cursor: UploadCursor) -> None:
        """Count an in-flight chunk as confirmed if it landed before the interruption."""
        status = self.ledger.signature_status(cursor.pending)
        if status == LANDED:
            log.info("chunk.recovered", index=cursor.confirmed + 1, signature=cursor.pending)
            cursor.confirmed += 1
            cursor.signatures.append(cursor.pending)
        else:
            log.info("chunk.resend", index=cursor.confirmed + 1, signature=cursor.pending, status=status)
        cursor.pending = None
        self._persist(cursor)

    def upload(self, chunks: list[ProofChunk]) -> UploadReport:
        total = len(chunks)
        if total == 0:
            raise ValueError("Nothing to upload: the proof is empty")
        proof_len = sum(c.length for c in chunks)
        cursor = self._open_cursor(chunks)
        resumed_from = cursor.confirmed
        log.info("upload.start", cache=str(self.cache), chunks=total, bytes=proof_len)

        accumulated = sum(c.length for c in chunks[:cursor.confirmed])
        for chunk in chunks[cursor.confirmed:]:
            # Strict order: indices contiguous, no repeats, never past the proof length.
            if chunk.index != cursor.confirmed or chunk.total != total:
                raise ValueError(
                    f"Out-of-order chunk {chunk.index}/{chunk.total}, expected {cursor.confirmed}/{total}"
                )
            if accumulated + chunk.length > proof_len:
                raise ValueError("Chunk would overrun the proof length")

            log.info("chunk.submit", index=chunk.index + 1, total=total, size=chunk.length)
            try:
                signed = self.ledger.sign([self.instruction(chunk)], self.signer)
                cursor.pending = signed.signature
                self._persist(cursor)
                sig = self.ledger.submit(signed)
            except LedgerSubmissionError as e:
                for line in e.logs:
                    log.error("chunk.failed.log", line=line)
                raise UploadAborted(chunk.index, total, str(e), e.logs) from e

            accumulated += chunk.length
            cursor.confirmed += 1
            cursor.signatures.append(sig)
            cursor.pending = None
            self._persist(cursor)
            log.info("chunk.confirmed", index=chunk.index + 1, total=total, signature=sig)

            self.sleep(self.delay)

            landed = self.ledger.fetch_transaction(sig)
            if landed is not None:
                for line in landed.logs:
                    log.debug("chunk.log", index=chunk.index + 1, line=line)

        if self.cursor_path is not None and self.cursor_path.exists():
            self.cursor_path.unlink()
        log.info("upload.complete", cache=str(self.cache), chunks=total)
        return UploadReport(
            cache=str(self.cache),
            total=total,
            resumed_from=resumed_from,
            signatures=list(cursor.signatures),
            bytes_uploaded=accumulated,
        )


@dataclass(frozen=True)
class ValidationReport:
    signature: str
    logs: list[str]


class ValidationTrigger:
    def __init__(
        self,
        ledger,
        signer: Keypair,
        relay_program: str | Pubkey,
        prover_program: str | Pubkey,
        compute_unit_limit: int = COMPUTE_UNIT_LIMIT,
        compute_unit_price: int = COMPUTE_UNIT_PRICE,
    ):
        self.ledger = ledger
        self.signer = signer
        self.relay_program = as_pubkey(relay_program)
        self.prover_program = as_pubkey(prover_program)
        self.compute_unit_limit = compute_unit_limit
        self.compute_unit_price = compute_unit_price
        self.cache = cache_address(signer.pubkey(), self.prover_program)
        self.internal = internal_address(self.prover_program)

    def instructions(self) -> list[Instruction]:
        validate = Instruction(
            self.relay_program,
            VALIDATE_PROOF_DISCRIMINATOR,
            [
                AccountMeta(self.prover_program, is_signer=False, is_writable=False),
                AccountMeta(self.cache, is_signer=False, is_writable=True),
                AccountMeta(self.signer.pubkey(), is_signer=True, is_writable=True),
                AccountMeta(self.internal, is_signer=False, is_writable=True),
                AccountMeta(Pubkey.from_string(SYSVAR_INSTRUCTIONS_ID), is_signer=False, is_writable=False),
                AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            ],
        )
        return [
            set_compute_unit_limit(self.compute_unit_limit),
            set_compute_unit_price(self.compute_unit_price),
            validate,
        ]

    def validate(self) -> ValidationReport:
        log.info("validate.submit", cache=str(self.cache), internal=str(self.internal))
        try:
            sig = self.ledger.send_and_confirm(self.instructions(), self.signer)
        except LedgerSubmissionError as e:
            raise ValidationError(f"Proof validation failed: {e}", e.logs) from e

        landed = self.ledger.fetch_transaction(sig)
        logs = landed.logs if landed is not None else []
        log.info("validate.confirmed", signature=sig, log_lines=len(logs))
        return ValidationReport(signature=sig, logs=logs)
