"""Query relayed key/value events - latest value per key."""
from __future__ import annotations

import sys
from pathlib import Path

import duckdb


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python query_events.py <events-dir> [key]")
        print("Example: python query_events.py events/ foo")
        sys.exit(1)

    events = Path(sys.argv[1])
    if events.is_dir():
        events = events / "events-*.parquet"
    key = sys.argv[2] if len(sys.argv) > 2 else None

    con = duckdb.connect(":memory:")
    con.execute(f"CREATE VIEW events AS SELECT * FROM read_parquet('{events}')")

    where = "WHERE key = ?" if key is not None else ""
    sql = f"""
    SELECT key, value, nonce, slot, signature
    FROM events
    {where}
    QUALIFY row_number() OVER (PARTITION BY key ORDER BY nonce DESC, slot DESC) = 1
    ORDER BY key
    """

    print(f"--- Latest values ({'all keys' if key is None else key}) ---\n")

    df = con.execute(sql, [key] if key is not None else []).fetchdf()
    if df.empty:
        print("No key/value events relayed yet.")
    else:
        for _, row in df.iterrows():
            print(f"KEY: {row['key']}")
            print(f"  Value: {row['value']}")
            print(f"  Nonce: {row['nonce']}  Slot: {row['slot']}")
            print(f"  Tx: {row['signature'][:32]}...")
            print()


if __name__ == "__main__":
    main()
