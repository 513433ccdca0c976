import json
import signal
import threading
from pathlib import Path

import click

from solrelay_core.config import load_config
from solrelay_core.ledger import SourceLedger
from solrelay_core.observability import configure_logging
from solrelay_core.protocol import RELAY_BATCH_LIMIT, RELAY_POLL_INTERVAL

from .relay import EventRelay
from .sink import ParquetEventSink


@click.command()
@click.argument("program_id", required=False)
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--rpc", help="Source ledger RPC URL (defaults to solana_rpc_url)")
@click.option("--limit", type=int, default=RELAY_BATCH_LIMIT, show_default=True, help="Signatures fetched per tick")
@click.option("--interval", type=float, default=RELAY_POLL_INTERVAL, show_default=True, help="Seconds between ticks")
@click.option("--out", type=click.Path(file_okay=False, path_type=Path), help="Write each batch as a parquet shard in this directory")
@click.option("--ticks", type=int, default=None, help="Stop after this many ticks (default: until interrupted)")
def main(program_id, config_path, rpc, limit, interval, out, ticks):
    """Tail PROGRAM_ID (defaults to logger_program_id) and print key/value events as JSON lines."""
    configure_logging()
    cfg = load_config(config_path)
    relay = EventRelay(SourceLedger(rpc or cfg.solana_rpc_url), program_id or cfg.logger_program_id, limit, interval)
    sink = ParquetEventSink(out) if out else None

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    def emit(evt):
        click.echo(json.dumps(evt.as_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False))
        if sink is not None:
            sink.add(evt)

    def write_batch(_events):
        if sink is not None:
            sink.flush()

    click.echo("Relayer started. Press Ctrl+C to stop.", err=True)
    relay.run(emit, stop, on_batch=write_batch, max_ticks=ticks)


if __name__ == "__main__":
    main()
