"""
Event histories: recording, JSON/text dumps and positional comparison.
"""

import json
import logging
import threading
from dataclasses import dataclass
from typing import IO, Any, Callable, Iterable, Iterator, List, Optional, Sequence

from .errors import DecodeError
from .event import Event, TextDumpOptions
from .resultset import DigestOptions

logger = logging.getLogger(__name__)


# Handler(event) consumes one event as it is recorded
EventHandler = Callable[[Event], None]


@dataclass(frozen=True)
class JsonDumpOptions:
    """Options for History.dump_json. Empty indent means compact output."""
    prefix: str = ""
    indent: str = ""


class History:
    """
    Ordered, append-only sequence of events.

    append() is not synchronized; sessions recording concurrently should go
    through a LockedHistory.
    """

    def __init__(self, events: Optional[Iterable[Event]] = None):
        self._events: List[Event] = list(events or [])

    def append(self, event: Event):
        self._events.append(event)

    collect = append

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __getitem__(self, index):
        return self._events[index]

    def __repr__(self) -> str:
        return f"History({len(self._events)} events)"

    # -------------------------------------------------------------------------
    # JSON
    # -------------------------------------------------------------------------

    def to_list(self) -> List[dict]:
        return [e.to_dict() for e in self._events]

    @classmethod
    def from_list(cls, records: Sequence[Any]) -> 'History':
        if not isinstance(records, list):
            raise DecodeError(f"history must be an array, got {type(records).__name__}")
        history = cls()
        for i, record in enumerate(records):
            try:
                history.append(Event.from_dict(record))
            except DecodeError as e:
                raise DecodeError(f"event #{i}: {e}") from e
        logger.debug("Decoded history with %d events", len(history))
        return history

    def dump_json(self, w: IO[str], opts: Optional[JsonDumpOptions] = None):
        """
        Write the history as one JSON array followed by a newline.

        With an indent every element starts on its own line; every line after
        the first is prefixed with opts.prefix.
        """
        opts = opts or JsonDumpOptions()
        records = self.to_list()
        if opts.indent or opts.prefix:
            text = json.dumps(records, indent=opts.indent)
            text = text.replace("\n", "\n" + opts.prefix)
        else:
            text = json.dumps(records, separators=(",", ":"))
        w.write(text + "\n")

    @classmethod
    def load_json(cls, r: IO[str]) -> 'History':
        try:
            records = json.load(r)
        except json.JSONDecodeError as e:
            raise DecodeError(f"invalid history json: {e}") from e
        return cls.from_list(records)

    # -------------------------------------------------------------------------
    # Text
    # -------------------------------------------------------------------------

    def dump_text(self, w: IO[str], opts: Optional[TextDumpOptions] = None):
        for e in self._events:
            e.dump_text(w, opts)


class LockedHistory:
    """
    History recorder that is safe to feed from concurrent sessions.

    Usage:
        recorder = LockedHistory()
        handler = compose_handlers(recorder.collect, text_dumper(sys.stdout))
        ... sessions call handler(event) ...
        history = recorder.snapshot()
    """

    def __init__(self, history: Optional[History] = None):
        self._lock = threading.Lock()
        self._history = history if history is not None else History()

    def collect(self, event: Event):
        with self._lock:
            self._history.append(event)

    append = collect

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)

    def snapshot(self) -> History:
        """Copy of the events recorded so far."""
        with self._lock:
            return History(self._history)


# =============================================================================
# Event Handlers
# =============================================================================

def text_dumper(w: IO[str], opts: Optional[TextDumpOptions] = None) -> EventHandler:
    """Handler that writes each event as text."""
    def handler(event: Event):
        event.dump_text(w, opts)
    return handler


def compose_handlers(*handlers: EventHandler) -> EventHandler:
    """Handler that passes each event to all handlers, in order."""
    def handler(event: Event):
        for h in handlers:
            h(event)
    return handler


# =============================================================================
# Comparison
# =============================================================================

@dataclass
class Mismatch:
    """A difference between two histories."""
    index: int
    message: str

    def __str__(self) -> str:
        return f"[#{self.index}] {self.message}"


def compare_histories(
    expected: Sequence[Event],
    actual: Sequence[Event],
    opts: Optional[DigestOptions] = None,
) -> List[Mismatch]:
    """
    Compare two histories event by event.

    Events are paired by position, never reordered. A length difference is
    reported as a mismatch at the first unpaired index.
    """
    mismatches = []
    for i, (a, b) in enumerate(zip(expected, actual)):
        ok, msg = a.equal_to(b, opts)
        if not ok:
            mismatches.append(Mismatch(i, msg))

    if len(expected) != len(actual):
        n = min(len(expected), len(actual))
        mismatches.append(Mismatch(n, f"expect {len(expected)} events, got {len(actual)}"))

    logger.debug(
        "Compared %d/%d events: %d mismatches",
        len(expected), len(actual), len(mismatches),
    )
    return mismatches


def histories_equal(
    expected: Sequence[Event],
    actual: Sequence[Event],
    opts: Optional[DigestOptions] = None,
) -> bool:
    return not compare_histories(expected, actual, opts)


def format_mismatches(mismatches: List[Mismatch]) -> str:
    """Format mismatches for display."""
    if not mismatches:
        return "Histories are equivalent"
    lines = [f"{len(mismatches)} mismatch(es):"]
    for m in mismatches:
        lines.append(f"  {m}")
    return "\n".join(lines)
