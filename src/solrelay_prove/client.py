"""Proof job client for the remote proving service (JSON-RPC over HTTPS)."""
from __future__ import annotations

import base64
import binascii
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator

import httpx
import structlog

from solrelay_core.errors import ProofTimeoutError, ServiceError, TransientNetworkFault
from solrelay_core.protocol import (
    POLL_BACKOFF_FACTOR,
    POLL_INITIAL_DELAY,
    POLL_MAX_ATTEMPTS,
    POLL_MAX_DELAY,
)

log = structlog.get_logger(__name__)

PENDING = "pending"
COMPLETE = "complete"
ERROR = "error"


@dataclass(frozen=True)
class ProofJob:
    job_id: str
    status: str
    proof: str | None = None
    error: str | None = None

    @property
    def payload(self) -> bytes:
        """Proof bytes; the service returns them base64 encoded."""
        if self.status != COMPLETE or self.proof is None:
            raise ValueError(f"Job {self.job_id} has no proof (status {self.status})")
        try:
            return base64.b64decode(self.proof, validate=True)
        except binascii.Error as e:
            raise ServiceError(f"Job {self.job_id} returned a proof that is not base64: {e}")


def backoff_delays(
    initial: float = POLL_INITIAL_DELAY,
    factor: float = POLL_BACKOFF_FACTOR,
    cap: float = POLL_MAX_DELAY,
    attempts: int = POLL_MAX_ATTEMPTS,
) -> Iterator[float]:
    """Delay after each pending poll: initial, then x factor, capped."""
    delay = initial
    for _ in range(attempts):
        yield delay
        delay = min(delay * factor, cap)


class ProofJobClient:
    def __init__(
        self,
        api_url: str,
        api_key: str,
        proof_dir: Path = Path("."),
        http: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int = POLL_MAX_ATTEMPTS,
    ):
        self.api_url = api_url
        self.proof_dir = Path(proof_dir)
        self.sleep = sleep
        self.max_attempts = max_attempts
        self.http = http or httpx.Client(timeout=30.0)
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _call(self, method: str, params: list):
        body = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        try:
            resp = self.http.post(self.api_url, json=body, headers=self.headers)
        except httpx.TransportError as e:
            # Timeouts and connection faults alike; ``wait`` retries them.
            raise TransientNetworkFault(f"{method}: {e}") from e

        if resp.is_error:
            raise ServiceError(f"{method}: HTTP {resp.status_code}: {resp.text}")
        try:
            data = resp.json()
        except ValueError as e:
            raise ServiceError(f"{method}: response is not JSON: {e}")
        if data.get("error"):
            err = data["error"]
            msg = err.get("message", err) if isinstance(err, dict) else err
            raise ServiceError(f"{method}: {msg}")
        return data.get("result")

    def submit(self, src_chain_id: int, tx_signature: str, program_id: str) -> str:
        params = [{"srcChainId": src_chain_id, "txSignature": tx_signature, "programID": program_id}]
        job_id = self._call("polymer_requestProof", params)
        if job_id is None:
            raise ServiceError("polymer_requestProof: no job id in response")
        log.info("proof.submitted", job_id=str(job_id), chain_id=src_chain_id, tx=tx_signature)
        return str(job_id)

    def query(self, job_id: str) -> ProofJob:
        result = self._call("polymer_queryProof", [job_id]) or {}
        status = result.get("status")
        if status == COMPLETE and result.get("proof"):
            return ProofJob(job_id, COMPLETE, proof=result["proof"])
        if status == ERROR:
            return ProofJob(job_id, ERROR, error=result.get("error") or "Unknown error")
        return ProofJob(job_id, PENDING)

    def proof_path(self, job_id: str) -> Path:
        return self.proof_dir / f"proof-{job_id}.json"

    def save(self, job: ProofJob) -> Path:
        self.proof_dir.mkdir(parents=True, exist_ok=True)
        path = self.proof_path(job.job_id)
        path.write_text(job.proof or "", encoding="utf-8")
        return path

    def wait(self, job_id: str) -> ProofJob:
        """Poll until the job resolves; transient faults and pending polls share the attempt budget."""
        delays = backoff_delays(attempts=self.max_attempts)
        delay = next(delays)
        for attempt in range(1, self.max_attempts + 1):
            log.info("proof.poll", job_id=job_id, attempt=attempt, max_attempts=self.max_attempts)
            try:
                job = self.query(job_id)
            except TransientNetworkFault as e:
                log.warning("proof.poll.network_error", job_id=job_id, error=str(e))
                self.sleep(delay)
                continue

            if job.status == COMPLETE:
                path = self.save(job)
                log.info("proof.complete", job_id=job_id, path=str(path))
                return job
            if job.status == ERROR:
                raise ServiceError(f"Proof generation failed: {job.error}")

            self.sleep(delay)
            delay = next(delays, delay)
        raise ProofTimeoutError(job_id, self.max_attempts)

    def request_proof(self, src_chain_id: int, tx_signature: str, program_id: str) -> bytes:
        job_id = self.submit(src_chain_id, tx_signature, program_id)
        return self.wait(job_id).payload
