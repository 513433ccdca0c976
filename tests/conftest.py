from __future__ import annotations

import json

import httpx
import pytest
import structlog
from solana.rpc.providers import http as solana_http
from solders.hash import Hash
from solders.keypair import Keypair
from solders.rpc.responses import (
    GetSignaturesForAddressResp,
    GetTransactionResp,
    RpcConfirmedTransactionStatusWithSignature,
)
from solders.signature import Signature
from solders.transaction import Transaction, VersionedTransaction
from solders.transaction_status import (
    EncodedConfirmedTransactionWithStatusMeta,
    EncodedTransactionWithStatusMeta,
    UiTransactionStatusMeta,
)

from solrelay_core.errors import LedgerSubmissionError, TransientNetworkFault
from solrelay_core.ledger import LANDED, SignatureInfo, SignedTransaction, TransactionLogs


class FakeLedger:
    """In-memory stand-in for SourceLedger."""

    def __init__(self, fail_at: int | None = None, fail_logs: list[str] | None = None):
        self.sent: list[list] = []
        self.txs: dict[str, TransactionLogs] = {}
        self.listing: list[SignatureInfo] = []
        self.fail_at = fail_at
        self.fail_logs = fail_logs or []
        self.broken_fetches: set[str] = set()
        self.attempts = 0
        self.signed = 0
        self.unsent: dict[str, list] = {}
        self.statuses: dict[str, str] = {}

    def sign(self, instructions, signer):
        sig = f"sig-{self.signed}"
        self.signed += 1
        self.unsent[sig] = list(instructions)
        return SignedTransaction(sig, b"")

    def submit(self, signed):
        n = self.attempts
        self.attempts += 1
        instructions = self.unsent.pop(signed.signature)
        if self.fail_at is not None and n == self.fail_at:
            raise LedgerSubmissionError("custom program error: 0x1770", self.fail_logs)
        self.sent.append(instructions)
        self.txs[signed.signature] = TransactionLogs(signed.signature, 1000 + n, [f"Program log: tx {n}"])
        self.statuses[signed.signature] = LANDED
        return signed.signature

    def send_and_confirm(self, instructions, signer):
        return self.submit(self.sign(instructions, signer))

    def signature_status(self, signature):
        return self.statuses.get(signature)

    def fetch_transaction(self, signature):
        if signature in self.broken_fetches:
            raise TransientNetworkFault(f"connection reset fetching {signature}")
        return self.txs.get(signature)

    def recent_signatures(self, program, limit):
        return self.listing[:limit]

    def publish(self, signature: str, slot: int, logs: list[str]) -> None:
        self.listing.insert(0, SignatureInfo(signature, slot))
        self.txs[signature] = TransactionLogs(signature, slot, logs)



class RpcNode:
    """Scripted Solana JSON-RPC endpoint behind solana-py's own HTTP provider.

    Replies are keyed by method: a JSON string, an exception to raise, or a
    callable taking the request params. A list is consumed one reply per call.
    """

    def __init__(self):
        self.replies: dict = {}
        self.calls: list[str] = []

    def on(self, method: str, reply) -> None:
        self.replies[method] = reply

    def __call__(self, url, content=None, **kwargs):
        body = json.loads(content)
        method = body["method"]
        self.calls.append(method)
        reply = self.replies[method]
        if isinstance(reply, list):
            reply = reply.pop(0) if len(reply) > 1 else reply[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(body.get("params"))
        return httpx.Response(200, text=reply, request=httpx.Request("POST", url))


def rpc_error(code: int, message: str, data: dict | None = None) -> str:
    err = {"code": code, "message": message}
    if data is not None:
        err["data"] = data
    return json.dumps({"jsonrpc": "2.0", "id": 1, "error": err})


def signatures_reply(*entries: tuple[str, int]) -> str:
    """Newest first, as the node lists them."""
    value = [RpcConfirmedTransactionStatusWithSignature(Signature.from_string(s), slot) for s, slot in entries]
    return GetSignaturesForAddressResp(value).to_json()


def transaction_reply(slot: int, logs: list[str]) -> str:
    payer = Keypair()
    tx = Transaction.new_signed_with_payer([], payer.pubkey(), [payer], Hash.default())
    meta = UiTransactionStatusMeta(None, 5000, [], [], log_messages=logs)
    landed = EncodedTransactionWithStatusMeta(VersionedTransaction.from_legacy(tx), meta, None)
    return GetTransactionResp(EncodedConfirmedTransactionWithStatusMeta(slot, landed, None)).to_json()


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def signer():
    return Keypair()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def rpc_node(monkeypatch):
    node = RpcNode()
    monkeypatch.setattr(solana_http.httpx, "post", node)
    return node
