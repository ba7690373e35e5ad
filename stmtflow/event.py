"""
Session events: the tagged union, its JSON codec, equivalence and text form.

Contains:
- EventKind / EventMeta identifying what happened in which session
- Event carrying an Invoke or Return payload
- to_dict/from_dict and encode_event/decode_event for the wire format
- Event.equal_to for comparing traces from different runs or engines
"""

import base64
import binascii
import io
import json
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import IO, Any, Dict, List, Optional, Tuple, Union

from .errors import (
    DecodeError,
    EncodeError,
    Error,
    EventKindError,
    ResultSetError,
    wrap_error,
)
from .resultset import DigestOptions, ResultSet, ResultSetLike
from .stmt import Invoke, Return, Stmt


class EventKind(Enum):
    """Kinds of session events."""
    BLOCK = "Block"       # session blocked by the scheduler
    RESUME = "Resume"     # session continued after being blocked
    INVOKE = "Invoke"     # statement submitted
    RETURN = "Return"     # statement finished


@dataclass(frozen=True)
class EventMeta:
    """Which session emitted an event, and what kind it is."""
    kind: EventKind
    session: str

    def __str__(self) -> str:
        return f"{self.session}:{self.kind.value.lower()}"


@dataclass(frozen=True)
class TextDumpOptions:
    """Options for rendering events as text."""
    verbose: bool = False        # pretty print result rows
    with_latency: bool = False   # append start, end and cost of each return


Payload = Union[None, Invoke, Return]

_PAYLOAD_TYPES = {
    EventKind.BLOCK: type(None),
    EventKind.RESUME: type(None),
    EventKind.INVOKE: Invoke,
    EventKind.RETURN: Return,
}


@dataclass(frozen=True)
class Event:
    """
    A single event in a session trace.

    The payload is None for Block/Resume, an Invoke for Invoke and a Return
    for Return. A payload of the wrong type is rejected here; reading
    .invoke or .ret on an event without that payload raises EventKindError.
    """
    meta: EventMeta
    payload: Payload = None

    def __post_init__(self):
        if self.payload is not None and not isinstance(self.payload, _PAYLOAD_TYPES[self.meta.kind]):
            raise EventKindError(
                f"{self.meta.kind.value} event cannot carry {type(self.payload).__name__}"
            )

    @property
    def kind(self) -> EventKind:
        return self.meta.kind

    @property
    def session(self) -> str:
        return self.meta.session

    @property
    def invoke(self) -> Invoke:
        if self.meta.kind is not EventKind.INVOKE or self.payload is None:
            raise EventKindError(f"{self.meta} has no invoke payload")
        return self.payload

    @property
    def ret(self) -> Return:
        if self.meta.kind is not EventKind.RETURN or self.payload is None:
            raise EventKindError(f"{self.meta} has no return payload")
        return self.payload

    # -------------------------------------------------------------------------
    # Codec
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible record."""
        kind = self.meta.kind
        if not isinstance(kind, EventKind):
            raise EncodeError(f"unknown event: {kind!r}")

        record: Dict[str, Any] = {"kind": kind.value, "session": self.meta.session}
        if kind in (EventKind.BLOCK, EventKind.RESUME):
            return record

        if self.payload is None:
            raise EncodeError(f"{kind.value.lower()} data is missing")

        if kind is EventKind.INVOKE:
            record["stmt"] = self.payload.stmt.to_dict()
            return record

        ret = self.payload
        record["stmt"] = ret.stmt.to_dict()
        record["t"] = [int(ret.t[0]), int(ret.t[1])]
        if ret.err is not None:
            record["error"] = wrap_error(ret.err).to_dict()
            return record

        rs = ret.res
        try:
            raw = rs.encode()
        except ResultSetError as e:
            raise EncodeError(f"cannot encode result of {self.meta}: {e}") from e
        record["result"] = base64.b64encode(raw).decode("ascii")
        if not rs.is_exec_result():
            record["data"] = _data_projection(rs)
        return record

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Event':
        """Deserialize from a record produced by to_dict."""
        if not isinstance(data, dict):
            raise DecodeError(f"event record must be an object, got {type(data).__name__}")
        if "kind" not in data or "session" not in data:
            raise DecodeError("event record requires kind and session")

        try:
            kind = EventKind(data["kind"])
        except ValueError:
            raise DecodeError(f"unknown event: {data['kind']!r}") from None
        meta = EventMeta(kind, str(data["session"]))

        if kind in (EventKind.BLOCK, EventKind.RESUME):
            return cls(meta)

        if not isinstance(data.get("stmt"), dict):
            raise DecodeError(f"invalid {kind.value.lower()} event: stmt is missing")
        try:
            stmt = Stmt.from_dict(data["stmt"])
        except (TypeError, ValueError) as e:
            raise DecodeError(f"invalid {kind.value.lower()} event stmt: {e}") from e

        if kind is EventKind.INVOKE:
            return cls(meta, Invoke(sess=meta.session, stmt=stmt))

        t = [0, 0]
        try:
            for i, v in enumerate((data.get("t") or [])[:2]):
                t[i] = int(v)
        except (TypeError, ValueError) as e:
            raise DecodeError(f"invalid return event timestamps: {data.get('t')!r}") from e

        if data.get("error") is not None:
            if not isinstance(data["error"], dict):
                raise DecodeError("invalid return event: error must be an object")
            try:
                err = Error.from_dict(data["error"])
            except (TypeError, ValueError) as e:
                raise DecodeError(f"invalid return event error: {e}") from e
            return cls(meta, Return(stmt=stmt, t=(t[0], t[1]), err=err))

        if data.get("result") is None:
            raise DecodeError("invalid return event: error or result is missing")
        try:
            raw = base64.b64decode(data["result"], validate=True)
            res = ResultSet.decode(raw)
        except (binascii.Error, TypeError, ValueError) as e:
            raise DecodeError(f"invalid return event result: {e}") from e
        return cls(meta, Return(stmt=stmt, t=(t[0], t[1]), res=res))

    # -------------------------------------------------------------------------
    # Equivalence
    # -------------------------------------------------------------------------

    def equal_to(self, other: 'Event', opts: Optional[DigestOptions] = None) -> Tuple[bool, str]:
        """
        Compare two events, tolerating unordered rows and vendor error text.

        Returns (equal, message); message explains the first difference.
        """
        if self.meta != other.meta:
            return False, f"expect {self.meta!r}, got {other.meta!r}"

        tag = str(self.meta)
        if self.meta.kind is EventKind.INVOKE:
            this, that = self.invoke, other.invoke
            tag += f"({this.stmt.sql})"
            if this.stmt != that.stmt:
                return False, f"{tag}: expect {this.stmt!r}, got {that.stmt!r}"

        elif self.meta.kind is EventKind.RETURN:
            this, that = self.ret, other.ret
            tag += f"({this.stmt.sql})"
            if this.stmt != that.stmt:
                return False, f"{tag}: expect {this.stmt!r}, got {that.stmt!r}"

            if this.err is not None:
                if that.err is None:
                    return False, f"{tag}: expect ({wrap_error(this.err)}), got ok"
                e1, e2 = wrap_error(this.err), wrap_error(that.err)
                # only the expected side decides whether messages matter
                if e1.code != e2.code or (e1.code < 0 and e1.message != e2.message):
                    return False, f"{tag}: expect ({e1}), got ({e2})"
            else:
                if that.res is None:
                    return False, f"{tag}: expect a result, got ({wrap_error(that.err)})"
                r1, r2 = this.res, that.res
                if r1.is_exec_result() != r2.is_exec_result():
                    return False, f"{tag}: expect [{r1}], got [{r2}]"
                if not r1.is_exec_result():
                    o = opts or DigestOptions()
                    o = replace(o, sort=o.sort or this.stmt.unordered)
                    h1, h2 = r1.data_digest(o), r2.data_digest(o)
                    if h1 != h2:
                        return False, f"{tag}: expect digest {h1}, got {h2}"

        return True, ""

    # -------------------------------------------------------------------------
    # Text Rendering
    # -------------------------------------------------------------------------

    def dump_text(self, w: IO[str], opts: Optional[TextDumpOptions] = None):
        """Write a human readable rendering of the event."""
        opts = opts or TextDumpOptions()
        kind, sess = self.meta.kind, self.meta.session

        if kind is EventKind.INVOKE:
            inv = self.invoke
            sql = inv.sql
            if not sql.startswith("/*"):
                sql = f"/* {inv.sess} */ {sql}"
            w.write(sql + "\n")

        elif kind is EventKind.RETURN:
            ret = self.ret
            if ret.err is not None:
                w.write(f"-- {sess} >> {wrap_error(ret.err)}\n")
                return

            if opts.verbose and not ret.res.is_exec_result():
                buf = io.StringIO()
                ret.res.pretty_print(buf)
                for i, line in enumerate(buf.getvalue().splitlines(keepends=True)):
                    marker = ">>" if i == 0 else "  "
                    w.write(f"-- {sess} {marker} {line}")
            else:
                w.write(f"-- {sess} >> {ret.res}\n")

            if opts.with_latency:
                w.write(
                    f"-- {sess}    {_format_clock(ret.t[0])} ~ {_format_clock(ret.t[1])}"
                    f" (cost {_format_cost(ret.elapsed_ns)})\n"
                )

        elif kind is EventKind.BLOCK:
            w.write(f"-- {sess} >> blocked\n")

        elif kind is EventKind.RESUME:
            w.write(f"-- {sess} >> resumed\n")

    def __str__(self) -> str:
        buf = io.StringIO()
        self.dump_text(buf)
        return buf.getvalue().rstrip("\n")


# =============================================================================
# Constructors
# =============================================================================

def block_event(session: str) -> Event:
    return Event(EventMeta(EventKind.BLOCK, session))


def resume_event(session: str) -> Event:
    return Event(EventMeta(EventKind.RESUME, session))


def invoke_event(session: str, inv: Invoke) -> Event:
    if not isinstance(inv, Invoke):
        raise EventKindError(f"invoke event requires an Invoke, got {type(inv).__name__}")
    return Event(EventMeta(EventKind.INVOKE, session), inv)


def return_event(session: str, ret: Return) -> Event:
    if not isinstance(ret, Return):
        raise EventKindError(f"return event requires a Return, got {type(ret).__name__}")
    return Event(EventMeta(EventKind.RETURN, session), ret)


# =============================================================================
# JSON Helpers
# =============================================================================

def encode_event(event: Event) -> str:
    """Encode an event as a compact JSON string."""
    return json.dumps(event.to_dict(), separators=(",", ":"))


def decode_event(text: Union[str, bytes]) -> Event:
    """Decode an event from a JSON string."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid event json: {e}") from e
    return Event.from_dict(data)


def _data_projection(rs: ResultSetLike) -> List[List[Optional[str]]]:
    """Rows as text, for people reading the dump. Not read back."""
    rows = []
    for i in range(rs.nrows()):
        row = []
        for j in range(rs.ncols()):
            cell = rs.raw_value(i, j)
            row.append(None if cell is None else cell.decode("utf-8", errors="replace"))
        rows.append(row)
    return rows


def _format_clock(ns: int) -> str:
    seconds, rest = divmod(ns, 10**9)
    return datetime.fromtimestamp(seconds).strftime("%H:%M:%S") + f".{rest // 10**6:03d}"


def _format_cost(ns: int) -> str:
    return f"{ns / 1e6:.3f}ms"
