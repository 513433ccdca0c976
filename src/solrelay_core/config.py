"""solrelay configuration.

Loads config from:
  1. Defaults
  2. A JSON config file (CLI --config or $SOLRELAY_CONFIG)
  3. Environment variables (SOLRELAY_<OPTION>, upper-case)
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

from .protocol import (
    COMPUTE_UNIT_LIMIT,
    COMPUTE_UNIT_PRICE,
    DEFAULT_CHUNK_COUNT,
    LOGGER_PROGRAM_ID,
    PROVER_PROGRAM_ID,
    RELAY_PROGRAM_ID,
    SOLANA_CHAIN_ID,
)

ENV_PREFIX = "SOLRELAY_"


@dataclass(frozen=True)
class RelayConfig:
    proof_api_url: str = "https://proof.testnet.polymer.zone"
    proof_api_key: str | None = None
    solana_rpc_url: str = "https://api.devnet.solana.com"
    evm_rpc_url: str = "https://sepolia.base.org"
    evm_prover_address: str = "0xabC91c12Bda41BCd21fFAbB95A9e22eE18C4B513"
    prover_program_id: str = PROVER_PROGRAM_ID
    relay_program_id: str = RELAY_PROGRAM_ID
    logger_program_id: str = LOGGER_PROGRAM_ID
    keypair_path: str = str(Path.home() / ".config" / "solana" / "devnet.json")
    source_chain_id: int = SOLANA_CHAIN_ID
    proof_dir: str = "."
    chunk_count: int = DEFAULT_CHUNK_COUNT
    compute_unit_limit: int = COMPUTE_UNIT_LIMIT
    compute_unit_price: int = COMPUTE_UNIT_PRICE

    def require(self, *names: str) -> "RelayConfig":
        missing = [n for n in names if not getattr(self, n)]
        if missing:
            opts = ", ".join(f"{n} ({ENV_PREFIX}{n.upper()})" for n in missing)
            raise ValueError(f"Missing required configuration: {opts}")
        return self


def _coerce(name: str, raw):
    kind = {f.name: f.type for f in fields(RelayConfig)}[name]
    if kind == "int":
        try:
            return int(raw)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid value for {name}: expected an integer, got {raw!r}") from e
    return None if raw is None else str(raw)


def load_config(path: Path | None = None, environ: dict | None = None) -> RelayConfig:
    env = os.environ if environ is None else environ
    cfg = RelayConfig()
    known = {f.name for f in fields(RelayConfig)}

    if path is None and env.get(f"{ENV_PREFIX}CONFIG"):
        path = Path(env[f"{ENV_PREFIX}CONFIG"])
    if path is not None:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys in {path}: {', '.join(unknown)}")
        cfg = replace(cfg, **{k: _coerce(k, v) for k, v in data.items()})

    overrides = {}
    for name in known:
        raw = env.get(ENV_PREFIX + name.upper())
        if raw is not None and raw != "":
            overrides[name] = _coerce(name, raw)
    return replace(cfg, **overrides)
