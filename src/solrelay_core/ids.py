"""solrelay - Deterministic address and tag derivation."""
from __future__ import annotations

import hashlib

from solders.pubkey import Pubkey

from .protocol import DISCRIMINATOR_LEN, INTERNAL_SEED, LOGGER_SEED


def as_pubkey(value: str | Pubkey) -> Pubkey:
    """Accept a base58 string or a Pubkey."""
    if isinstance(value, Pubkey):
        return value
    return Pubkey.from_string(value.strip())


def anchor_discriminator(name: str) -> bytes:
    """Anchor instruction tag: first 8 bytes of sha256("global:<name>")."""
    return hashlib.sha256(f"global:{name}".encode("utf-8")).digest()[:DISCRIMINATOR_LEN]


def cache_address(submitter: str | Pubkey, prover_program: str | Pubkey) -> Pubkey:
    """Per-submitter proof cache record owned by the prover program."""
    pda, _bump = Pubkey.find_program_address([bytes(as_pubkey(submitter))], as_pubkey(prover_program))
    return pda


def internal_address(prover_program: str | Pubkey) -> Pubkey:
    """Prover-internal record touched by proof validation."""
    pda, _bump = Pubkey.find_program_address([INTERNAL_SEED], as_pubkey(prover_program))
    return pda


def logger_address(logger_program: str | Pubkey) -> Pubkey:
    """Singleton key/value logger record."""
    pda, _bump = Pubkey.find_program_address([LOGGER_SEED], as_pubkey(logger_program))
    return pda
