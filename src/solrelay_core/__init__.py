"""solrelay core - Shared protocol, addressing, errors and ledger access."""
from .ids import anchor_discriminator, as_pubkey, cache_address, internal_address, logger_address
from .logs import KeyValueRecord, decode_key_value_data, extract_key_value, parse_program_log

__all__ = [
    "anchor_discriminator",
    "as_pubkey",
    "cache_address",
    "internal_address",
    "logger_address",
    "KeyValueRecord",
    "decode_key_value_data",
    "extract_key_value",
    "parse_program_log",
]
