"""Source ledger adapter.

Every relay stage reaches Solana through ``SourceLedger``: one signed
transaction at a time, confirmed before the call returns. Signing and
submission are separate steps so a caller can record a transaction's
signature before it goes out.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import httpx
import structlog
from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.commitment import Confirmed
from solana.rpc.core import (
    RPCException,
    RPCNoResultException,
    TransactionExpiredBlockheightExceededError,
    UnconfirmedTxError,
)
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from .errors import LedgerSubmissionError, TransientNetworkFault

log = structlog.get_logger(__name__)

LANDED = "landed"
FAILED = "failed"

NETWORK_FAULTS = (SolanaRpcException, httpx.TransportError)
SUBMIT_FAULTS = (RPCException, RPCNoResultException, UnconfirmedTxError, TransactionExpiredBlockheightExceededError)
# A node that cannot serve a read yet (block not available, rate limited) is
# retried like a dropped connection.
READ_FAULTS = NETWORK_FAULTS + (RPCException,)


@dataclass(frozen=True)
class TransactionLogs:
    signature: str
    slot: int
    logs: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SignatureInfo:
    signature: str
    slot: int


@dataclass(frozen=True)
class SignedTransaction:
    signature: str
    raw: bytes


def rpc_error_logs(err: Exception) -> list[str]:
    """Pull simulation log lines out of a preflight failure, if any."""
    for arg in getattr(err, "args", ()):
        data = getattr(arg, "data", None)
        logs = getattr(data, "logs", None)
        if logs:
            return [str(x) for x in logs]
    return []


class SourceLedger:
    def __init__(self, rpc_url: str, client: Client | None = None):
        self.rpc_url = rpc_url
        self.client = client or Client(rpc_url, commitment=Confirmed)

    def _unreachable(self, e: Exception) -> TransientNetworkFault:
        return TransientNetworkFault(f"{self.rpc_url}: {e}")

    def sign(self, instructions: Sequence[Instruction], signer: Keypair) -> SignedTransaction:
        try:
            blockhash = self.client.get_latest_blockhash(Confirmed).value.blockhash
        except NETWORK_FAULTS as e:
            raise self._unreachable(e) from e
        except RPCException as e:
            raise LedgerSubmissionError(f"Could not fetch a recent blockhash: {e}") from e
        tx = Transaction.new_signed_with_payer(list(instructions), signer.pubkey(), [signer], blockhash)
        return SignedTransaction(signature=str(tx.signatures[0]), raw=bytes(tx))

    def submit(self, signed: SignedTransaction) -> str:
        try:
            sig = self.client.send_raw_transaction(
                signed.raw, opts=TxOpts(skip_confirmation=True, preflight_commitment=Confirmed)
            ).value
            statuses = self.client.confirm_transaction(sig, commitment=Confirmed).value
        except NETWORK_FAULTS as e:
            raise self._unreachable(e) from e
        except SUBMIT_FAULTS as e:
            raise LedgerSubmissionError(str(e), rpc_error_logs(e)) from e

        status = statuses[0] if statuses else None
        if status is not None and status.err is not None:
            landed = self.fetch_transaction(str(sig))
            raise LedgerSubmissionError(f"Transaction {sig} failed: {status.err}", landed.logs if landed else [])
        log.debug("ledger.confirmed", signature=str(sig))
        return str(sig)

    def send_and_confirm(self, instructions: Sequence[Instruction], signer: Keypair) -> str:
        return self.submit(self.sign(instructions, signer))

    def signature_status(self, signature: str) -> str | None:
        """LANDED, FAILED, or None when the ledger has no record of the signature."""
        try:
            resp = self.client.get_signature_statuses([Signature.from_string(signature)], search_transaction_history=True)
        except READ_FAULTS as e:
            raise self._unreachable(e) from e
        status = resp.value[0] if resp.value else None
        if status is None:
            return None
        return FAILED if status.err is not None else LANDED

    def fetch_transaction(self, signature: str) -> TransactionLogs | None:
        try:
            resp = self.client.get_transaction(
                Signature.from_string(signature),
                commitment=Confirmed,
                max_supported_transaction_version=0,
            )
        except READ_FAULTS as e:
            raise self._unreachable(e) from e
        tx = resp.value
        if tx is None:
            return None
        meta = tx.transaction.meta
        logs = list(meta.log_messages or []) if meta is not None else []
        return TransactionLogs(signature=signature, slot=int(tx.slot), logs=logs)

    def recent_signatures(self, program: Pubkey, limit: int) -> list[SignatureInfo]:
        """Newest first."""
        try:
            resp = self.client.get_signatures_for_address(program, limit=limit, commitment=Confirmed)
        except READ_FAULTS as e:
            raise self._unreachable(e) from e
        return [SignatureInfo(str(s.signature), int(s.slot)) for s in resp.value]
