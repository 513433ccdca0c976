import base64
import json

import httpx
import pytest

from solrelay_core.errors import ProofTimeoutError, ServiceError, TransientNetworkFault
from solrelay_prove.client import ProofJobClient, backoff_delays

PROOF = b"\x01proof-bytes\xff" * 5
PROOF_B64 = base64.b64encode(PROOF).decode("ascii")


class ProvingService:
    """Scripted JSON-RPC proving service: one queued outcome per poll."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.queries = 0
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append((request, body))
        if body["method"] == "polymer_requestProof":
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "job-7"})

        self.queries += 1
        outcome = self.outcomes.pop(0) if self.outcomes else "pending"
        if outcome == "reset":
            raise httpx.ReadError("Connection reset by peer", request=request)
        if outcome == "timeout":
            raise httpx.ReadTimeout("timed out", request=request)
        if outcome == "refused":
            raise httpx.ConnectError("Connection refused", request=request)
        if outcome == "complete":
            result = {"status": "complete", "proof": PROOF_B64}
        elif isinstance(outcome, tuple):
            result = {"status": "error", "error": outcome[1]}
        else:
            result = {"status": "pending"}
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})


def make_client(service, tmp_path, sleeps):
    http = httpx.Client(transport=httpx.MockTransport(service))
    return ProofJobClient("https://prover.test", "secret-key", tmp_path, http=http, sleep=sleeps.append)


def test_backoff_sequence_is_capped_and_non_decreasing():
    delays = list(backoff_delays())
    assert len(delays) == 20
    assert delays[:3] == [2.0, 3.0, 4.5]
    assert max(delays) == 10.0
    assert all(a <= b for a, b in zip(delays, delays[1:]))


def test_request_proof_polls_until_complete(tmp_path, sleeps):
    service = ProvingService(["pending", "pending", "complete"])
    client = make_client(service, tmp_path, sleeps)

    assert client.request_proof(2, "5r4Atx", "J8T7prog") == PROOF
    assert sleeps == [2.0, 3.0]
    assert (tmp_path / "proof-job-7.json").read_text() == PROOF_B64

    request, body = service.requests[0]
    assert request.headers["Authorization"] == "Bearer secret-key"
    assert body["params"] == [{"srcChainId": 2, "txSignature": "5r4Atx", "programID": "J8T7prog"}]
    assert service.requests[1][1]["params"] == ["job-7"]


def test_service_error_fails_without_further_polls(tmp_path, sleeps):
    service = ProvingService([("error", "unsupported chain")])
    client = make_client(service, tmp_path, sleeps)

    with pytest.raises(ServiceError, match="unsupported chain"):
        client.request_proof(2, "sig", "prog")
    assert service.queries == 1
    assert sleeps == []


def test_timeout_after_attempt_budget(tmp_path, sleeps):
    service = ProvingService([])
    client = make_client(service, tmp_path, sleeps)

    with pytest.raises(ProofTimeoutError) as exc:
        client.request_proof(2, "sig", "prog")
    assert exc.value.attempts == 20
    assert service.queries == 20
    assert len(sleeps) == 20
    assert max(sleeps) == 10.0


def test_transient_faults_consume_attempts_without_growing_delay(tmp_path, sleeps):
    service = ProvingService(["refused", "reset", "pending", "complete"])
    client = make_client(service, tmp_path, sleeps)

    assert client.request_proof(2, "sig", "prog") == PROOF
    assert sleeps == [2.0, 2.0, 2.0]
    assert service.queries == 4


def test_transient_faults_count_against_budget(tmp_path, sleeps):
    service = ProvingService(["reset"] * 25)
    client = make_client(service, tmp_path, sleeps)

    with pytest.raises(ProofTimeoutError):
        client.request_proof(2, "sig", "prog")
    assert service.queries == 20


def test_json_rpc_error_is_service_error(tmp_path, sleeps):
    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "bad params"}})

    client = ProofJobClient("https://prover.test", "k", tmp_path, http=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(ServiceError, match="bad params"):
        client.submit(2, "sig", "prog")


def test_http_error_status_is_service_error(tmp_path):
    def handler(request):
        return httpx.Response(401, text="unauthorized")

    client = ProofJobClient("https://prover.test", "k", tmp_path, http=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(ServiceError, match="401"):
        client.submit(2, "sig", "prog")


def test_submit_network_fault_is_transient(tmp_path):
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    client = ProofJobClient("https://prover.test", "k", tmp_path, http=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(TransientNetworkFault):
        client.submit(2, "sig", "prog")


def test_read_timeout_is_retried_like_a_network_fault(tmp_path, sleeps):
    service = ProvingService(["timeout", "complete"])
    client = make_client(service, tmp_path, sleeps)

    assert client.request_proof(2, "sig", "prog") == PROOF
    assert sleeps == [2.0]
    assert service.queries == 2
