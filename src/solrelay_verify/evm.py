"""Destination-chain verification of relayed Solana log proofs."""
from __future__ import annotations

from dataclasses import dataclass

import requests
import structlog
from solders.pubkey import Pubkey
from web3 import Web3
from web3.exceptions import ContractCustomError, ContractLogicError, Web3Exception

from solrelay_core.errors import MalformedProofError, RevertedCallError, ServiceError, TransientNetworkFault
from solrelay_core.logs import KeyValueRecord, extract_key_value

log = structlog.get_logger(__name__)

PROVER_ABI = [
    {
        "inputs": [{"internalType": "bytes", "name": "proof", "type": "bytes"}],
        "name": "validateSolLogs",
        "outputs": [
            {"internalType": "uint32", "name": "chainId", "type": "uint32"},
            {"internalType": "bytes32", "name": "programID", "type": "bytes32"},
            {"internalType": "string[]", "name": "logMessages", "type": "string[]"},
        ],
        "stateMutability": "view",
        "type": "function",
    }
]

# Revert reasons that mean the contract rejected the proof itself.
MALFORMED_MARKERS = ("invalid proof", "invalid length", "malformed", "decode", "invalidproof")


@dataclass(frozen=True)
class VerificationResult:
    chain_id: int
    program_id: bytes
    logs: list[str]
    records: list[KeyValueRecord | None]

    @property
    def program_id_hex(self) -> str:
        return "0x" + self.program_id.hex()

    @property
    def program_id_base58(self) -> str:
        return str(Pubkey.from_bytes(self.program_id))

    def as_dict(self) -> dict:
        return {
            "chain_id": self.chain_id,
            "program_id": self.program_id_hex,
            "program_id_base58": self.program_id_base58,
            "logs": self.logs,
            "records": [r.as_dict() if r else None for r in self.records],
        }


def _revert_reason(err: Exception) -> str:
    msg = getattr(err, "message", None) or str(err)
    data = getattr(err, "data", None)
    if data and str(data) not in msg:
        msg = f"{msg} (data: {data})"
    return msg


class CrossChainVerifier:
    def __init__(self, contract):
        self.contract = contract

    @classmethod
    def from_rpc(cls, rpc_url: str, address: str) -> "CrossChainVerifier":
        w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": 25}))
        contract = w3.eth.contract(address=Web3.to_checksum_address(address.strip()), abi=PROVER_ABI)
        return cls(contract)

    def verify(self, proof: bytes) -> VerificationResult:
        log.info("verify.call", proof_bytes=len(proof))
        try:
            chain_id, program_id, logs = self.contract.functions.validateSolLogs(proof).call()
        except ContractCustomError as e:
            raise MalformedProofError(f"Verifier rejected proof: {_revert_reason(e)}") from e
        except ContractLogicError as e:
            reason = _revert_reason(e)
            if any(m in reason.lower() for m in MALFORMED_MARKERS):
                raise MalformedProofError(f"Verifier rejected proof: {reason}") from e
            raise RevertedCallError(f"Verifier call reverted: {reason}") from e
        except requests.exceptions.RequestException as e:
            raise TransientNetworkFault(f"Verifier RPC unreachable: {e}") from e
        except Web3Exception as e:
            raise ServiceError(f"Verifier RPC failed: {e}") from e

        logs = [str(x) for x in logs]
        records = [extract_key_value(line) for line in logs]
        log.info("verify.ok", chain_id=int(chain_id), log_lines=len(logs), records=sum(1 for r in records if r))
        return VerificationResult(int(chain_id), bytes(program_id), logs, records)
