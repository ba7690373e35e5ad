"""
Statement, Invoke and Return value types carried by events.
"""

import time
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .resultset import ResultSetLike


# =============================================================================
# Statement Flags
# =============================================================================

S_WAIT = 1 << 0        # statement is expected to block
S_QUERY = 1 << 1       # statement returns rows
S_UNORDERED = 1 << 2   # result rows have no guaranteed order


@dataclass(frozen=True)
class Stmt:
    """A statement in a session's schedule."""
    sql: str
    seq: int = 0
    flags: int = 0

    @property
    def unordered(self) -> bool:
        return self.flags & S_UNORDERED != 0

    def to_dict(self) -> dict:
        return {"seq": self.seq, "flags": self.flags, "sql": self.sql}

    @classmethod
    def from_dict(cls, data: dict) -> 'Stmt':
        return cls(
            sql=str(data.get("sql", "")),
            seq=int(data.get("seq", 0)),
            flags=int(data.get("flags", 0)),
        )


@dataclass(frozen=True)
class Invoke:
    """A session is about to execute a statement."""
    sess: str
    stmt: Stmt

    @property
    def sql(self) -> str:
        return self.stmt.sql


@dataclass(frozen=True)
class Return:
    """
    Outcome of an invoked statement.

    Exactly one of res and err is set. t holds the start and end of the
    execution as Unix nanoseconds.
    """
    stmt: Stmt
    t: Tuple[int, int] = (0, 0)
    res: Optional[ResultSetLike] = field(default=None, compare=False)
    err: Optional[BaseException] = field(default=None, compare=False)

    def __post_init__(self):
        if (self.res is None) == (self.err is None):
            raise ValueError("return must carry exactly one of res or err")
        if len(self.t) != 2:
            raise ValueError(f"t must hold start and end, got {self.t!r}")

    @property
    def elapsed_ns(self) -> int:
        return self.t[1] - self.t[0]


def now_ns() -> int:
    """Current Unix time in nanoseconds."""
    return time.time_ns()
