"""solrelay watch - Source-ledger key/value event relay."""
from .relay import EventRelay, RelayEvent, scan_logs

__all__ = ["EventRelay", "RelayEvent", "scan_logs"]
