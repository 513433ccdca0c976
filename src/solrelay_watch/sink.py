"""Parquet output for relayed events.

Each flushed batch becomes its own shard, ``events-<seq>.parquet``, under the
output directory. Shards are written once and never rewritten; readers glob
the directory (``read_parquet('<dir>/*.parquet')``).
"""
from __future__ import annotations

from pathlib import Path

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from .relay import RelayEvent

EVENT_SCHEMA = pa.schema(
    [
        ("signature", pa.string()),
        ("slot", pa.int64()),
        ("instruction_index", pa.int32()),
        ("key_value_index", pa.int32()),
        ("key", pa.string()),
        ("value", pa.string()),
        ("nonce", pa.int64()),
    ]
)

SHARD_GLOB = "events-*.parquet"


class ParquetEventSink:
    def __init__(self, out_dir: Path):
        self.out_dir = Path(out_dir)
        self.pending: list[dict] = []
        self.seq = len(list(self.out_dir.glob(SHARD_GLOB))) if self.out_dir.is_dir() else 0

    def add(self, event: RelayEvent) -> None:
        self.pending.append(event.as_dict())

    def flush(self) -> Path | None:
        """Write buffered events as the next shard and clear the buffer."""
        if not self.pending:
            return None
        self.out_dir.mkdir(parents=True, exist_ok=True)
        path = self.out_dir / f"events-{self.seq:08d}.parquet"
        while path.exists():
            self.seq += 1
            path = self.out_dir / f"events-{self.seq:08d}.parquet"

        df = pd.DataFrame(self.pending).sort_values(["slot", "signature", "key_value_index"])
        tmp = path.with_name(path.name + ".tmp")
        pq.write_table(pa.Table.from_pandas(df, schema=EVENT_SCHEMA, preserve_index=False), tmp)
        tmp.replace(path)

        self.pending = []
        self.seq += 1
        return path
