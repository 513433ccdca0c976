"""Parsing of program log lines emitted by the key/value logger program."""
from __future__ import annotations

import base64
import binascii
import re
import struct
from dataclasses import dataclass

PROGRAM_KV_LINE = re.compile(r"^Program log: Key: (.+), Value: (.+), Nonce: (\d+)$")
KV_FRAGMENT = re.compile(r"Key: (.+), Value: (.+), Nonce: (\d+)")
PROGRAM_DATA_PREFIX = "Program data: "


@dataclass(frozen=True)
class KeyValueRecord:
    key: str
    value: str
    nonce: int

    def as_dict(self) -> dict:
        return {"key": self.key, "value": self.value, "nonce": self.nonce}


def _record(m: re.Match | None) -> KeyValueRecord | None:
    if m is None:
        return None
    return KeyValueRecord(m.group(1), m.group(2), int(m.group(3)))


def parse_program_log(line: str) -> KeyValueRecord | None:
    """Strict match of a full ``Program log: Key: k, Value: v, Nonce: n`` line."""
    return _record(PROGRAM_KV_LINE.match(line))


def extract_key_value(line: str) -> KeyValueRecord | None:
    """Find a ``Key: k, Value: v, Nonce: n`` fragment anywhere in the line."""
    return _record(KV_FRAGMENT.search(line))


def _read_string(buf: bytes, off: int) -> tuple[str, int]:
    (n,) = struct.unpack_from("<I", buf, off)
    off += 4
    if off + n > len(buf):
        raise ValueError("string runs past end of buffer")
    return buf[off:off + n].decode("utf-8"), off + n


def decode_key_value_data(data: str) -> KeyValueRecord | None:
    """Decode a Borsh ``KeyValueLog`` (string key, string value, u64 nonce).

    ``data`` is the base64 payload of a ``Program data:`` line, with or without
    the prefix. Returns None when the payload is not exactly such a record.
    """
    if data.startswith(PROGRAM_DATA_PREFIX):
        data = data[len(PROGRAM_DATA_PREFIX):]
    try:
        buf = base64.b64decode(data.strip(), validate=True)
        key, off = _read_string(buf, 0)
        value, off = _read_string(buf, off)
        (nonce,) = struct.unpack_from("<Q", buf, off)
    except (binascii.Error, struct.error, ValueError):
        return None
    if off + 8 != len(buf):
        return None
    return KeyValueRecord(key, value, int(nonce))


def encode_borsh_string(text: str) -> bytes:
    b = text.encode("utf-8")
    return struct.pack("<I", len(b)) + b
