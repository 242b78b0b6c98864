"""Ordered, atomic journal of governance notifications.

Events recorded inside an :meth:`EventJournal.atomic` block are buffered and
only committed when the outermost block exits cleanly, so a failed state
transition emits nothing. Committed events can optionally be persisted as
append-only, hash-chained JSONL: each entry's SHA-256 hash covers the
previous entry's hash, so altering any line breaks the chain for every line
after it.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from govledger.core.config import JournalConfig
from govledger.core.types import EventKind, GovernanceEvent

logger = logging.getLogger(__name__)

Listener = Callable[[GovernanceEvent], None]


class JournalEntry:
    """A persisted event with its chain hash metadata."""

    def __init__(self, event: GovernanceEvent, previous_hash: str, entry_hash: str) -> None:
        self.event = event
        self.previous_hash = previous_hash
        self.entry_hash = entry_hash

    def to_dict(self) -> dict[str, Any]:
        return {
            "previous_hash": self.previous_hash,
            "entry_hash": self.entry_hash,
            "event": json.loads(self.event.model_dump_json()),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JournalEntry:
        return cls(
            event=GovernanceEvent(**data["event"]),
            previous_hash=data["previous_hash"],
            entry_hash=data["entry_hash"],
        )


class EventJournal:
    """In-order notification log with atomic buffering and optional persistence.

    Args:
        config: JournalConfig instance. When ``log_dir`` is set, committed
            events are appended to ``log_dir/log_file`` and any events
            already in that file are loaded.
    """

    def __init__(self, config: JournalConfig | None = None) -> None:
        self._config = config or JournalConfig()
        self._events: list[GovernanceEvent] = []
        self._pending: list[list[GovernanceEvent]] = []
        self._listeners: list[Listener] = []
        self._last_hash = self._compute_genesis_hash()
        self._log_path: Path | None = None

        if self._config.log_dir:
            log_dir = Path(self._config.log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            self._log_path = log_dir / self._config.log_file
            if self._log_path.exists():
                self._recover()

    @staticmethod
    def _compute_genesis_hash() -> str:
        return hashlib.sha256(b"govledger-genesis").hexdigest()

    @staticmethod
    def _compute_hash(previous_hash: str, event_json: str) -> str:
        return hashlib.sha256((previous_hash + event_json).encode("utf-8")).hexdigest()

    def _recover(self) -> None:
        """Load persisted events and the last chain hash."""
        assert self._log_path is not None
        with open(self._log_path) as fh:
            for line in fh:
                stripped = line.strip()
                if not stripped:
                    continue
                entry = JournalEntry.from_dict(json.loads(stripped))
                self._events.append(entry.event)
                self._last_hash = entry.entry_hash

    def subscribe(self, listener: Listener) -> None:
        """Call ``listener`` with every event as it is committed."""
        self._listeners.append(listener)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Buffer events until the outermost block exits without error."""
        self._pending.append([])
        try:
            yield
        except Exception:
            self._pending.pop()
            raise

        events = self._pending.pop()
        if self._pending:
            self._pending[-1].extend(events)
        else:
            for event in events:
                self._commit(event)

    def record(
        self,
        kind: EventKind,
        contract: str,
        actor: str,
        transaction_id: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> GovernanceEvent:
        """Emit an event, buffered if inside an atomic block."""
        event = GovernanceEvent(
            kind=kind,
            contract=contract,
            actor=actor,
            transaction_id=transaction_id,
            details=details or {},
        )
        if self._pending:
            self._pending[-1].append(event)
        else:
            self._commit(event)
        return event

    def _commit(self, event: GovernanceEvent) -> None:
        event.sequence = len(self._events)
        self._events.append(event)

        if self._log_path is not None:
            event_json = event.model_dump_json()
            entry = JournalEntry(
                event=event,
                previous_hash=self._last_hash,
                entry_hash=self._compute_hash(self._last_hash, event_json),
            )
            with open(self._log_path, "a") as fh:
                fh.write(json.dumps(entry.to_dict()) + "\n")
            self._last_hash = entry.entry_hash

        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Journal listener failed for event %s", event.event_id)

    def verify_chain(self) -> bool:
        """Recompute every persisted hash. True if the file is intact or absent."""
        if self._log_path is None or not self._log_path.exists():
            return True

        previous_hash = self._compute_genesis_hash()
        with open(self._log_path) as fh:
            for line in fh:
                stripped = line.strip()
                if not stripped:
                    continue

                data = json.loads(stripped)
                if data["previous_hash"] != previous_hash:
                    return False

                event = GovernanceEvent(**data["event"])
                expected = self._compute_hash(previous_hash, event.model_dump_json())
                if data["entry_hash"] != expected:
                    return False

                previous_hash = data["entry_hash"]

        return True

    def query(
        self,
        kind: EventKind | str | None = None,
        transaction_id: int | None = None,
        actor: str | None = None,
        contract: str | None = None,
    ) -> list[GovernanceEvent]:
        """Committed events matching every given filter, in emission order."""
        results: list[GovernanceEvent] = []
        for event in self._events:
            if kind is not None and event.kind != kind:
                continue
            if transaction_id is not None and event.transaction_id != transaction_id:
                continue
            if actor is not None and event.actor != actor.lower():
                continue
            if contract is not None and event.contract != contract.lower():
                continue
            results.append(event)
        return results

    @property
    def events(self) -> list[GovernanceEvent]:
        return list(self._events)

    @property
    def log_path(self) -> Path | None:
        return self._log_path

    @property
    def last_hash(self) -> str:
        return self._last_hash
