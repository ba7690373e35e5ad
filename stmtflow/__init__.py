"""
stmtflow

Records execution traces of concurrent SQL sessions and checks two traces
for equivalence despite row order, timing and vendor error text.
"""

from .errors import (
    StmtflowError,
    EncodeError,
    DecodeError,
    EventKindError,
    ResultSetError,
    ConfigError,
    Error,
    ERROR_WRAPPERS,
    register_error_wrapper,
    wrap_error,
)
from .resultset import (
    ColumnDef,
    DigestOptions,
    ExecInfo,
    ResultSet,
    ResultSetLike,
)
from .stmt import (
    S_WAIT,
    S_QUERY,
    S_UNORDERED,
    Stmt,
    Invoke,
    Return,
    now_ns,
)
from .event import (
    EventKind,
    EventMeta,
    Event,
    TextDumpOptions,
    block_event,
    resume_event,
    invoke_event,
    return_event,
    encode_event,
    decode_event,
)
from .history import (
    History,
    LockedHistory,
    JsonDumpOptions,
    Mismatch,
    text_dumper,
    compose_handlers,
    compare_histories,
    histories_equal,
    format_mismatches,
)
from .config import (
    StmtflowConfig,
    parse_config,
    load_config,
)

__all__ = [
    # Errors
    "StmtflowError",
    "EncodeError",
    "DecodeError",
    "EventKindError",
    "ResultSetError",
    "ConfigError",
    "Error",
    "ERROR_WRAPPERS",
    "register_error_wrapper",
    "wrap_error",
    # Result sets
    "ColumnDef",
    "DigestOptions",
    "ExecInfo",
    "ResultSet",
    "ResultSetLike",
    # Statements
    "S_WAIT",
    "S_QUERY",
    "S_UNORDERED",
    "Stmt",
    "Invoke",
    "Return",
    "now_ns",
    # Events
    "EventKind",
    "EventMeta",
    "Event",
    "TextDumpOptions",
    "block_event",
    "resume_event",
    "invoke_event",
    "return_event",
    "encode_event",
    "decode_event",
    # History
    "History",
    "LockedHistory",
    "JsonDumpOptions",
    "Mismatch",
    "text_dumper",
    "compose_handlers",
    "compare_histories",
    "histories_equal",
    "format_mismatches",
    # Config
    "StmtflowConfig",
    "parse_config",
    "load_config",
]
