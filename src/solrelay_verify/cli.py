import json
from pathlib import Path

import click

from solrelay_core.config import load_config
from solrelay_core.errors import ProofFormatError
from solrelay_core.observability import configure_logging

from .encodings import ProofEncoding
from .evm import CrossChainVerifier
from .logic import AUTO, load_proof, verify_proof_file

ENCODINGS = [e.value for e in ProofEncoding] + [AUTO]


@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def main(ctx, config_path):
    configure_logging()
    ctx.obj = load_config(config_path)


@main.command("proof")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--encoding", type=click.Choice(ENCODINGS), default=ProofEncoding.BASE64.value, show_default=True)
@click.option("--rpc", help="Destination chain RPC URL (defaults to evm_rpc_url)")
@click.option("--address", help="Verifier contract address (defaults to evm_prover_address)")
@click.pass_obj
def proof_cmd(cfg, path: Path, encoding: str, rpc, address):
    """Verify a stored proof against the destination chain verifier."""
    verifier = CrossChainVerifier.from_rpc(rpc or cfg.evm_rpc_url, address or cfg.evm_prover_address)
    result = verify_proof_file(path, encoding, verifier)
    click.echo(json.dumps(result, sort_keys=True, separators=(",", ":"), ensure_ascii=False))
    if result["status"] != "PASS":
        raise SystemExit(1)


@main.command("decode")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--encoding", type=click.Choice(ENCODINGS), required=True)
def decode_cmd(path: Path, encoding: str):
    """Print the decoded proof bytes as 0x-hex, without any network call."""
    try:
        proof = load_proof(path, encoding)
    except ProofFormatError as e:
        click.echo(f"FATAL: {e}", err=True)
        raise SystemExit(1)
    click.echo("0x" + proof.hex())


if __name__ == "__main__":
    main()
