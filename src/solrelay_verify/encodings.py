"""Proof artifact encodings.

Callers declare how a stored proof is encoded. ``guess_encoding`` keeps the
old best-effort sniffing order for callers that explicitly ask for ``auto``;
it can misclassify (a hex string is also valid base64 alphabet).
"""
from __future__ import annotations

import base64
import binascii
import json
import re
from enum import Enum

from solrelay_core.errors import ProofFormatError

BASE64_RE = re.compile(r"^[A-Za-z0-9+/=]+$")
NON_BASE64_RE = re.compile(r"[^A-Za-z0-9+/=]")
HEX_PREFIX = "0x"


class ProofEncoding(str, Enum):
    BASE64 = "base64"
    HEX = "hex"
    JSON_BYTES = "json"
    RAW = "raw"


def _from_hex(text: str) -> bytes:
    h = text[2:] if text.lower().startswith(HEX_PREFIX) else text
    try:
        return bytes.fromhex(h)
    except ValueError as e:
        raise ProofFormatError(f"Invalid hex proof: {e}")


def _from_json(text: str) -> bytes:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProofFormatError(f"Proof is not JSON: {e}")

    if isinstance(obj, list):
        if not all(isinstance(b, int) and not isinstance(b, bool) and 0 <= b < 256 for b in obj):
            raise ProofFormatError("JSON proof array must hold integers in 0..255")
        return bytes(obj)
    if isinstance(obj, str) and obj.startswith(HEX_PREFIX):
        return _from_hex(obj)
    # Anything else is carried as its compact JSON text.
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def decode_proof(text: str, encoding: ProofEncoding) -> bytes:
    text = text.strip()
    encoding = ProofEncoding(encoding)
    if encoding is ProofEncoding.BASE64:
        try:
            return base64.b64decode(NON_BASE64_RE.sub("", text), validate=True)
        except binascii.Error as e:
            raise ProofFormatError(f"Invalid base64 proof: {e}")
    if encoding is ProofEncoding.HEX:
        return _from_hex(text)
    if encoding is ProofEncoding.JSON_BYTES:
        return _from_json(text)
    return text.encode("utf-8")


def guess_encoding(text: str) -> ProofEncoding:
    """Best-effort ordered sniff: base64 alphabet, JSON, 0x-hex, raw text."""
    text = text.strip()
    if BASE64_RE.match(text):
        return ProofEncoding.BASE64
    try:
        json.loads(text)
        return ProofEncoding.JSON_BYTES
    except json.JSONDecodeError:
        pass
    if text.startswith(HEX_PREFIX):
        return ProofEncoding.HEX
    return ProofEncoding.RAW
