# -*- coding: utf-8 -*-
"""
Diagnostics Sink

Collects soft warnings and errors produced while analysing a carbon tree
(declared/aggregate CO2eq mismatches, unreadable footprint fields) so the
analysis can still render with best-effort values while the user is told
what to double-check.

Diagnostics raised before a handler is registered are buffered and handed
to the handler as soon as one is registered. The buffer is bounded; once it
is full the oldest diagnostic is dropped. Every diagnostic is also
written to the standard logger.

Example:
    >>> from carbontrace.diagnostics import get_sink
    >>> sink = get_sink()
    >>> sink.register_handler(lambda d: print(d.message))
    >>> sink.add("Mismatch between asset CO2eq and its components CO2eq")
    Mismatch between asset CO2eq and its components CO2eq
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterator, List, Optional, Set, Tuple

from carbontrace.config import get_config

logger = logging.getLogger(__name__)


class DiagnosticLevel(str, Enum):
    """Severity of a diagnostic."""
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Diagnostic:
    """One reported condition.

    Attributes:
        message: Short title of the condition.
        details: Longer explanation for the user.
        level: Severity.
        timestamp: When the condition was reported.
        context: Machine-readable details (asset ids, values).
    """

    message: str
    details: Optional[str] = None
    level: DiagnosticLevel = DiagnosticLevel.WARNING
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["level"] = self.level.value
        data["timestamp"] = self.timestamp.isoformat()
        return data


Handler = Callable[[Diagnostic], None]


class DiagnosticsSink:
    """Buffered receiver of analysis diagnostics."""

    def __init__(self, max_pending: int = 1000) -> None:
        self._handler: Optional[Handler] = None
        self._pending: Deque[Diagnostic] = deque()
        self._max_pending = max(1, max_pending)
        self._dropped = 0
        self._seen: Set[Tuple[str, Optional[str]]] = set()
        self._lock = threading.RLock()

    @property
    def registered(self) -> bool:
        return self._handler is not None

    @property
    def pending(self) -> List[Diagnostic]:
        """Diagnostics waiting for a handler."""
        return list(self._pending)

    @property
    def dropped(self) -> int:
        """Buffered diagnostics discarded because the buffer was full."""
        return self._dropped

    def register_handler(self, handler: Handler) -> None:
        """Install the handler and flush everything buffered so far.

        Registering twice replaces the previous handler and logs an error.
        """
        with self._lock:
            if self._handler is not None:
                logger.error("Diagnostics handler already registered, replacing it")
            self._handler = handler
            pending, self._pending = list(self._pending), deque()
        for diagnostic in pending:
            self._dispatch(handler, diagnostic)

    def unregister_handler(self) -> None:
        with self._lock:
            self._handler = None

    def add(
        self,
        message: str,
        details: Optional[str] = None,
        level: DiagnosticLevel = DiagnosticLevel.WARNING,
        context: Optional[Dict[str, Any]] = None,
        dedupe: bool = False,
    ) -> Optional[Diagnostic]:
        """Report a condition.

        Args:
            message: Short title.
            details: Longer explanation.
            level: Severity.
            context: Machine-readable details.
            dedupe: Drop the diagnostic if the same message and details
                were already reported to this sink.

        Returns:
            The recorded diagnostic, or None if it was deduplicated.
        """
        with self._lock:
            if dedupe:
                key = (message, details)
                if key in self._seen:
                    return None
                self._seen.add(key)
            diagnostic = Diagnostic(
                message=message,
                details=details,
                level=level,
                context=context or {},
            )
            handler = self._handler
            if handler is None:
                self._pending.append(diagnostic)
                if len(self._pending) > self._max_pending:
                    self._pending.popleft()
                    self._dropped += 1
                    if self._dropped == 1:
                        logger.warning(
                            "Diagnostics buffer full (%d), dropping the oldest entries",
                            self._max_pending,
                        )

        log = logger.error if level is DiagnosticLevel.ERROR else logger.warning
        log("%s%s", message, f": {details}" if details else "")

        if handler is not None:
            self._dispatch(handler, diagnostic)
        return diagnostic

    def add_exception(self, exc: BaseException, message: Optional[str] = None) -> Diagnostic:
        """Report an exception as an error diagnostic."""
        return self.add(
            message or f"Error of unknown type: {exc}",
            details=f"{type(exc).__name__}: {exc}",
            level=DiagnosticLevel.ERROR,
        )

    @contextmanager
    def capture(
        self,
        message: str = "Problem while creating analysis",
        details: Optional[str] = "Please be wary and check essential values manually",
    ) -> Iterator[None]:
        """Turn an exception in the block into a warning.

        Only for best-effort steps whose failure must not abort the
        analysis; the exception is logged with its traceback.
        """
        try:
            yield
        except Exception as exc:
            logger.warning("Captured %s: %s", type(exc).__name__, exc, exc_info=True)
            self.add(message, details, context={"exception": repr(exc)})

    def drain(self) -> List[Diagnostic]:
        """Return and clear the buffered diagnostics."""
        with self._lock:
            pending, self._pending = list(self._pending), deque()
        return pending

    def clear(self) -> None:
        """Forget buffered diagnostics, drop count and deduplication memory."""
        with self._lock:
            self._pending = deque()
            self._seen = set()
            self._dropped = 0

    @staticmethod
    def _dispatch(handler: Handler, diagnostic: Diagnostic) -> None:
        try:
            handler(diagnostic)
        except Exception as exc:
            logger.error("Diagnostics handler failed: %s", exc, exc_info=True)


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_sink_instance: Optional[DiagnosticsSink] = None
_sink_lock = threading.Lock()


def get_sink() -> DiagnosticsSink:
    """Return the process-wide diagnostics sink."""
    global _sink_instance
    if _sink_instance is None:
        with _sink_lock:
            if _sink_instance is None:
                _sink_instance = DiagnosticsSink(
                    max_pending=get_config().max_pending_diagnostics,
                )
    return _sink_instance


def set_sink(sink: DiagnosticsSink) -> None:
    """Replace the process-wide sink (useful for testing)."""
    global _sink_instance
    with _sink_lock:
        _sink_instance = sink


def reset_sink() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _sink_instance
    with _sink_lock:
        _sink_instance = None


__all__ = [
    "Diagnostic",
    "DiagnosticLevel",
    "DiagnosticsSink",
    "get_sink",
    "set_sink",
    "reset_sink",
]
