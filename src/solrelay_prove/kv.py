"""Key/value logger demo: produces the program logs that get proven."""
from __future__ import annotations

import structlog
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from solrelay_core.errors import LedgerSubmissionError, ProtocolMismatchError
from solrelay_core.ids import anchor_discriminator, as_pubkey, logger_address
from solrelay_core.ledger import TransactionLogs
from solrelay_core.logs import encode_borsh_string

log = structlog.get_logger(__name__)

ALREADY_IN_USE = "already in use"


def _already_in_use(err: LedgerSubmissionError) -> bool:
    return any(ALREADY_IN_USE in line for line in [str(err), *err.logs])


class KeyValueLogger:
    def __init__(self, ledger, signer: Keypair, program: str | Pubkey):
        self.ledger = ledger
        self.signer = signer
        self.program = as_pubkey(program)
        self.record = logger_address(self.program)

    def initialize(self) -> str:
        ix = Instruction(
            self.program,
            anchor_discriminator("initialize"),
            [
                AccountMeta(self.record, is_signer=False, is_writable=True),
                AccountMeta(self.signer.pubkey(), is_signer=True, is_writable=True),
                AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            ],
        )
        try:
            return self.ledger.send_and_confirm([ix], self.signer)
        except LedgerSubmissionError as e:
            if not _already_in_use(e):
                raise
            raise ProtocolMismatchError(f"Logger record {self.record} is already initialized: {e}", e.logs) from e

    def ensure_initialized(self) -> str | None:
        try:
            sig = self.initialize()
        except ProtocolMismatchError as e:
            log.info("logger.already_initialized", record=str(self.record), detail=str(e))
            return None
        log.info("logger.initialized", record=str(self.record), signature=sig)
        return sig

    def log_key_value(self, key: str, value: str) -> TransactionLogs:
        data = anchor_discriminator("log_key_value") + encode_borsh_string(key) + encode_borsh_string(value)
        ix = Instruction(
            self.program,
            data,
            [
                AccountMeta(self.record, is_signer=False, is_writable=True),
                AccountMeta(self.signer.pubkey(), is_signer=True, is_writable=False),
            ],
        )
        sig = self.ledger.send_and_confirm([ix], self.signer)
        log.info("logger.logged", key=key, value=value, signature=sig)
        landed = self.ledger.fetch_transaction(sig)
        return landed if landed is not None else TransactionLogs(signature=sig, slot=0)
