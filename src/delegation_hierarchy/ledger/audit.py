"""LedgerAuditLog — JSONL audit trail of ledger transactions.

Every transaction the in-memory ledger applies or rejects is appended as a
single JSON line, either to a file or, when no path is configured, to an
in-memory buffer that can be drained with :meth:`LedgerAuditLog.drain_buffer`.
"""
from __future__ import annotations

import datetime
import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class AuditEvent:
    """A single audited ledger transaction.

    Parameters
    ----------
    call:
        The transaction's call name.
    origin:
        The account that submitted the transaction.
    outcome:
        ``"applied"`` or ``"rejected"``.
    details:
        Call parameters and, for rejections, the ledger error code.
    timestamp:
        UTC datetime of the event. Defaults to now.
    """

    call: str
    origin: str
    outcome: str
    details: dict[str, object] = field(default_factory=dict)
    timestamp: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary suitable for JSON encoding."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "call": self.call,
            "origin": self.origin,
            "outcome": self.outcome,
            "details": self.details,
        }


class LedgerAuditLog:
    """Append-only JSONL log of ledger transactions.

    Thread-safe.

    Parameters
    ----------
    log_path:
        Path to the JSONL file. Parent directories are created. If None,
        events are buffered in memory only.
    """

    def __init__(self, log_path: Optional[Path] = None) -> None:
        self._log_path = log_path
        self._buffer: list[str] = []
        self._lock = threading.Lock()

        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, event: AuditEvent) -> None:
        """Append *event* to the log."""
        line = json.dumps(event.to_dict(), separators=(",", ":"), default=str)
        with self._lock:
            if self._log_path is not None:
                with self._log_path.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
            else:
                self._buffer.append(line)

    def log_applied(self, call: str, origin: str, **details: object) -> None:
        """Record a transaction the ledger accepted."""
        self.log(AuditEvent(call=call, origin=origin, outcome="applied", details=dict(details)))

    def log_rejected(self, call: str, origin: str, code: str, **details: object) -> None:
        """Record a transaction the ledger rejected with error *code*."""
        self.log(
            AuditEvent(
                call=call,
                origin=origin,
                outcome="rejected",
                details={"code": code, **details},
            )
        )

    def drain_buffer(self) -> list[str]:
        """Return and clear the in-memory buffer, oldest first."""
        with self._lock:
            events = list(self._buffer)
            self._buffer.clear()
        return events

    def read_log(self, tail: Optional[int] = None) -> list[dict[str, object]]:
        """Read events back, optionally only the last *tail* of them."""
        with self._lock:
            if self._log_path is None or not self._log_path.exists():
                lines = list(self._buffer)
            else:
                lines = self._log_path.read_text(encoding="utf-8").splitlines()

        parsed: list[dict[str, object]] = []
        for line in lines:
            stripped = line.strip()
            if not stripped:
                continue
            try:
                parsed.append(json.loads(stripped))
            except json.JSONDecodeError:
                continue

        if tail is not None:
            return parsed[-tail:]
        return parsed


__all__ = ["AuditEvent", "LedgerAuditLog"]
