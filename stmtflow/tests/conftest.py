"""
Shared fixtures for stmtflow tests.
"""

import pytest

from stmtflow.errors import Error
from stmtflow.event import block_event, invoke_event, resume_event, return_event
from stmtflow.history import History
from stmtflow.resultset import ResultSet
from stmtflow.stmt import S_QUERY, S_UNORDERED, Invoke, Return, Stmt


T0 = 1_700_000_000_123_456_789
T1 = 1_700_000_000_125_000_001


@pytest.fixture
def select_stmt() -> Stmt:
    return Stmt("SELECT * FROM t", seq=1, flags=S_QUERY | S_UNORDERED)


@pytest.fixture
def ordered_stmt() -> Stmt:
    return Stmt("SELECT * FROM t ORDER BY id", seq=2, flags=S_QUERY)


@pytest.fixture
def insert_stmt() -> Stmt:
    return Stmt("INSERT INTO t VALUES (3, 'c')", seq=3)


@pytest.fixture
def rows() -> ResultSet:
    return ResultSet(["id", "name"], [[1, "a"], [2, "b"]])


@pytest.fixture
def sample_history(select_stmt, insert_stmt, rows) -> History:
    """A two-session history covering every event kind."""
    return History([
        invoke_event("s1", Invoke("s1", select_stmt)),
        return_event("s1", Return(select_stmt, (T0, T1), res=rows)),
        invoke_event("s2", Invoke("s2", insert_stmt)),
        block_event("s2"),
        resume_event("s2"),
        return_event("s2", Return(insert_stmt, (T0, T1), err=Error(1062, "Duplicate entry '3'"))),
    ])
