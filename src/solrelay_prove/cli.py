"""solrelay - Proof request, upload and validation commands."""
from __future__ import annotations

import json
from pathlib import Path

import click

from solrelay_core.config import RelayConfig, load_config
from solrelay_core.errors import RelayError
from solrelay_core.keys import load_keypair
from solrelay_core.ledger import SourceLedger
from solrelay_core.logs import PROGRAM_DATA_PREFIX, decode_key_value_data, extract_key_value
from solrelay_core.observability import configure_logging
from solrelay_verify.encodings import ProofEncoding
from solrelay_verify.evm import CrossChainVerifier
from solrelay_verify.logic import AUTO, load_proof

from .chunks import split_into_chunks
from .client import ProofJobClient
from .kv import KeyValueLogger
from .upload import ChunkUploader, ValidationTrigger

ENCODINGS = [e.value for e in ProofEncoding] + [AUTO]


def _fatal(e: Exception) -> None:
    # Fail closed with a single-line reason, followed by any ledger diagnostics.
    click.echo(f"FATAL: {e}", err=True)
    for line in getattr(e, "logs", []):
        click.echo(f"  {line}", err=True)
    raise SystemExit(1)


def _proof_client(cfg: RelayConfig) -> ProofJobClient:
    cfg.require("proof_api_url", "proof_api_key")
    return ProofJobClient(cfg.proof_api_url, cfg.proof_api_key, Path(cfg.proof_dir))


def _ledger_and_signer(cfg: RelayConfig):
    return SourceLedger(cfg.solana_rpc_url), load_keypair(Path(cfg.keypair_path))


def _upload(cfg: RelayConfig, ledger, signer, proof: bytes, chunks: int, cursor: Path | None):
    pieces = split_into_chunks(proof, chunks)
    click.echo(f"Split {len(proof)} byte proof into {len(pieces)} chunks: {[c.length for c in pieces]}")
    uploader = ChunkUploader(ledger, signer, cfg.relay_program_id, cfg.prover_program_id, cursor_path=cursor)
    report = uploader.upload(pieces)
    click.echo(f"Loaded {report.total} chunks into cache {report.cache}")
    for i, sig in enumerate(report.signatures, start=1):
        click.echo(f"  chunk {i}: {sig}")
    return report


def _validate(cfg: RelayConfig, ledger, signer):
    trigger = ValidationTrigger(
        ledger,
        signer,
        cfg.relay_program_id,
        cfg.prover_program_id,
        compute_unit_limit=cfg.compute_unit_limit,
        compute_unit_price=cfg.compute_unit_price,
    )
    report = trigger.validate()
    click.echo(f"Proof validated: {report.signature}")
    for line in report.logs:
        click.echo(f"  {line}")
    return report


@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def main(ctx, config_path):
    configure_logging()
    ctx.obj = load_config(config_path)


@main.command("request")
@click.argument("tx_signature")
@click.argument("program_id")
@click.pass_obj
def request_cmd(cfg: RelayConfig, tx_signature: str, program_id: str):
    """Request a proof for TX_SIGNATURE emitted by PROGRAM_ID and save it."""
    try:
        client = _proof_client(cfg)
        job_id = client.submit(cfg.source_chain_id, tx_signature, program_id)
        job = client.wait(job_id)
    except (RelayError, ValueError) as e:
        _fatal(e)
    click.echo(f"Proof saved to {client.proof_path(job.job_id)}")


@main.command("load")
@click.argument("proof_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--chunks", type=int, default=None, help="Chunk target (defaults to chunk_count)")
@click.option("--encoding", type=click.Choice(ENCODINGS), default=ProofEncoding.BASE64.value, show_default=True)
@click.option("--cursor", type=click.Path(dir_okay=False, path_type=Path), help="Resumable upload cursor file")
@click.pass_obj
def load_cmd(cfg: RelayConfig, proof_file: Path, chunks, encoding: str, cursor):
    """Upload PROOF_FILE into the on-chain cache record, one chunk per transaction."""
    try:
        proof = load_proof(proof_file, encoding)
        ledger, signer = _ledger_and_signer(cfg)
        click.echo(f"Connected with wallet: {signer.pubkey()}")
        _upload(cfg, ledger, signer, proof, chunks or cfg.chunk_count, cursor)
    except (RelayError, ValueError) as e:
        _fatal(e)


@main.command("validate")
@click.pass_obj
def validate_cmd(cfg: RelayConfig):
    """Reassemble and validate the cached proof on-chain."""
    try:
        ledger, signer = _ledger_and_signer(cfg)
        _validate(cfg, ledger, signer)
    except (RelayError, ValueError) as e:
        _fatal(e)


@main.command("relay")
@click.argument("tx_signature")
@click.argument("program_id")
@click.option("--chunks", type=int, default=None, help="Chunk target (defaults to chunk_count)")
@click.option("--cursor", type=click.Path(dir_okay=False, path_type=Path), help="Resumable upload cursor file")
@click.option("--verify", is_flag=True, help="Also verify the proof on the destination chain")
@click.pass_obj
def relay_cmd(cfg: RelayConfig, tx_signature: str, program_id: str, chunks, cursor, verify):
    """Request, upload and validate a proof in one run."""
    try:
        client = _proof_client(cfg)
        ledger, signer = _ledger_and_signer(cfg)
        proof = client.request_proof(cfg.source_chain_id, tx_signature, program_id)
        _upload(cfg, ledger, signer, proof, chunks or cfg.chunk_count, cursor)
        _validate(cfg, ledger, signer)
        if verify:
            result = CrossChainVerifier.from_rpc(cfg.evm_rpc_url, cfg.evm_prover_address).verify(proof)
            click.echo(json.dumps(result.as_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False))
    except (RelayError, ValueError) as e:
        _fatal(e)


@main.command("log-kv")
@click.argument("key")
@click.argument("value")
@click.pass_obj
def log_kv_cmd(cfg: RelayConfig, key: str, value: str):
    """Log KEY/VALUE through the logger program (initializing it if needed)."""
    try:
        ledger, signer = _ledger_and_signer(cfg)
        logger = KeyValueLogger(ledger, signer, cfg.logger_program_id)
        logger.ensure_initialized()
        landed = logger.log_key_value(key, value)
    except (RelayError, ValueError) as e:
        _fatal(e)

    click.echo(f"Logged key: {key}, value: {value} in {landed.signature}")
    for line in landed.logs:
        if line.startswith(PROGRAM_DATA_PREFIX):
            rec = decode_key_value_data(line)
        else:
            rec = extract_key_value(line)
        suffix = f"  -> {rec.as_dict()}" if rec else ""
        click.echo(f"  {line}{suffix}")


if __name__ == "__main__":
    main()
