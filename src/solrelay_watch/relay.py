"""Event relay: tails a program's transactions and extracts key/value logs.

The relay is a single-owner loop. ``poll_once`` walks the newest signatures
until it reaches the cursor, fetches each new transaction and only then
releases the batch's events and advances the cursor, so an aborted tick emits
nothing and is retried whole on the next tick. ``run`` reschedules after each
tick completes and stops when its ``threading.Event`` is set.
"""
from __future__ import annotations

import threading
from collections import deque
from dataclasses import asdict, dataclass
from typing import Callable

import structlog
from solders.pubkey import Pubkey

from solrelay_core.errors import RelayError
from solrelay_core.ids import as_pubkey
from solrelay_core.logs import parse_program_log
from solrelay_core.protocol import (
    LOG_KEY_VALUE_MARKER,
    RELAY_BATCH_LIMIT,
    RELAY_POLL_INTERVAL,
    RELAY_SEEN_WINDOW,
)

log = structlog.get_logger(__name__)

IDLE = "idle"
TRACKING = "tracking"


@dataclass(frozen=True)
class RelayEvent:
    signature: str
    slot: int
    instruction_index: int
    key_value_index: int
    key: str
    value: str
    nonce: int

    def as_dict(self) -> dict:
        return asdict(self)


def scan_logs(signature: str, slot: int, logs: list[str]) -> list[RelayEvent]:
    """One event per key/value line; the instruction index is the last marker seen (-1 if none)."""
    events: list[RelayEvent] = []
    instruction_index = -1
    for i, line in enumerate(logs):
        if line == LOG_KEY_VALUE_MARKER:
            instruction_index = i
            continue
        rec = parse_program_log(line)
        if rec is not None:
            events.append(RelayEvent(signature, slot, instruction_index, i, rec.key, rec.value, rec.nonce))
    return events


class EventRelay:
    def __init__(
        self,
        ledger,
        program: str | Pubkey,
        limit: int = RELAY_BATCH_LIMIT,
        interval: float = RELAY_POLL_INTERVAL,
    ):
        self.ledger = ledger
        self.program = as_pubkey(program)
        self.limit = limit
        self.interval = interval
        self.cursor: str | None = None
        self._seen: deque[str] = deque(maxlen=RELAY_SEEN_WINDOW)
        self._seen_set: set[str] = set()

    @property
    def state(self) -> str:
        return IDLE if self.cursor is None else TRACKING

    def _remember(self, signature: str) -> None:
        if len(self._seen) == self._seen.maxlen:
            self._seen_set.discard(self._seen[0])
        self._seen.append(signature)
        self._seen_set.add(signature)

    def poll_once(self) -> list[RelayEvent]:
        infos = self.ledger.recent_signatures(self.program, self.limit)
        fresh = []
        for info in infos:
            if info.signature == self.cursor:
                break
            if info.signature in self._seen_set:
                continue
            fresh.append(info)

        batch: list[RelayEvent] = []
        for info in fresh:
            tx = self.ledger.fetch_transaction(info.signature)
            if tx is not None and tx.logs:
                batch.extend(scan_logs(info.signature, tx.slot, tx.logs))

        for info in fresh:
            self._remember(info.signature)
        if infos:
            self.cursor = infos[0].signature
        if fresh:
            log.debug("relay.batch", new=len(fresh), events=len(batch), cursor=self.cursor)
        return batch

    def run(
        self,
        on_event: Callable[[RelayEvent], None],
        stop: threading.Event | None = None,
        on_batch: Callable[[list[RelayEvent]], None] | None = None,
        max_ticks: int | None = None,
    ) -> None:
        """Tick until ``stop`` is set or ``max_ticks`` ticks have run.

        ``on_batch`` sees each non-empty batch after its events.
        """
        stop = stop or threading.Event()
        ticks = 0
        log.info("relay.start", program=str(self.program), interval=self.interval, limit=self.limit)
        while not stop.is_set():
            try:
                events = self.poll_once()
            except RelayError as e:
                log.error("relay.poll_failed", error=str(e), code=e.code)
            else:
                for evt in events:
                    on_event(evt)
                if events and on_batch is not None:
                    on_batch(events)
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            stop.wait(self.interval)
        log.info("relay.stop", cursor=self.cursor)
