from __future__ import annotations

import math
import struct
from dataclasses import dataclass

from solrelay_core.protocol import (
    CHUNK_HEADER_FMT,
    CHUNK_HEADER_LEN,
    DISCRIMINATOR_LEN,
    LOAD_PROOF_DISCRIMINATOR,
)


@dataclass(frozen=True)
class ProofChunk:
    index: int
    total: int
    data: bytes

    @property
    def length(self) -> int:
        return len(self.data)


def split_into_chunks(payload: bytes, n: int) -> list[ProofChunk]:
    """Split into ceil(len/n)-sized pieces.

    A short payload can yield fewer than ``n`` chunks (e.g. 5 bytes over 4
    targets gives 3 chunks of 2, 2, 1).
    """
    if n < 1:
        raise ValueError(f"Chunk target must be >= 1, got {n}")
    if not payload:
        return []
    size = math.ceil(len(payload) / n)
    pieces = [payload[i:i + size] for i in range(0, len(payload), size)]
    return [ProofChunk(i, len(pieces), bytes(p)) for i, p in enumerate(pieces)]


def encode_chunk_instruction(chunk: ProofChunk, discriminator: bytes = LOAD_PROOF_DISCRIMINATOR) -> bytes:
    if len(discriminator) != DISCRIMINATOR_LEN:
        raise ValueError(f"Discriminator must be {DISCRIMINATOR_LEN} bytes")
    return struct.pack(CHUNK_HEADER_FMT, discriminator, chunk.length) + chunk.data


def decode_chunk_instruction(data: bytes) -> tuple[bytes, bytes]:
    """Inverse of encode_chunk_instruction: (discriminator, chunk bytes)."""
    if len(data) < CHUNK_HEADER_LEN:
        raise ValueError(f"Instruction too short: {len(data)} < {CHUNK_HEADER_LEN}")
    disc, dlen = struct.unpack_from(CHUNK_HEADER_FMT, data)
    body = data[CHUNK_HEADER_LEN:]
    if len(body) != dlen:
        raise ValueError(f"Length prefix {dlen} does not match body length {len(body)}")
    return disc, body
