"""
Error types and the portable error wrapper.

Every execution-time failure recorded in a trace passes through
wrap_error(), which turns driver-specific exceptions into a portable
Error(code, message). Vendor support is added by registering one more
wrapper strategy; nothing else in the package knows about drivers.
"""

import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Package Exceptions
# =============================================================================

class StmtflowError(Exception):
    """Base class for errors raised by stmtflow."""
    pass


class EncodeError(StmtflowError):
    """An event or history could not be encoded."""
    pass


class DecodeError(StmtflowError):
    """A record could not be decoded into an event."""
    pass


class EventKindError(StmtflowError, TypeError):
    """An event payload does not match the event kind."""
    pass


class ResultSetError(StmtflowError, ValueError):
    """A result set payload is malformed."""
    pass


class ConfigError(StmtflowError):
    """Invalid configuration."""
    pass


# =============================================================================
# Portable Error
# =============================================================================

class Error(Exception):
    """
    Portable execution error.

    code == 0 means there is no vendor code and only the message is shown,
    code < 0 marks an unclassified error compared by message, and code > 0
    is a vendor error code compared on its own.
    """

    def __init__(self, code: int, message: str):
        super().__init__(code, message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        if self.code == 0:
            return self.message
        return f"E{self.code}: {self.message}"

    def __repr__(self) -> str:
        return f"Error(code={self.code!r}, message={self.message!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Error):
            return NotImplemented
        return self.code == other.code and self.message == other.message

    def __hash__(self) -> int:
        return hash((self.code, self.message))

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}

    @classmethod
    def from_dict(cls, data: dict) -> 'Error':
        return cls(code=int(data.get("code", 0)), message=str(data.get("message", "")))


UNCLASSIFIED = -1


# =============================================================================
# Wrapper Strategies
# =============================================================================

# Strategy(err) -> Error if it recognizes the error shape, else None
ErrorWrapper = Callable[[BaseException], Optional[Error]]


# Ordered registry of wrapper strategies, consulted first to last
ERROR_WRAPPERS: List[ErrorWrapper] = []


def register_error_wrapper(func: ErrorWrapper) -> ErrorWrapper:
    """
    Decorator to register a vendor error wrapper.

    Usage:
        @register_error_wrapper
        def wrap_pg_error(err):
            if type(err).__module__.startswith("psycopg"):
                return Error(int(err.sqlstate, 36), err.pgerror)
            return None
    """
    ERROR_WRAPPERS.append(func)
    return func


# Modules whose exceptions follow the MySQL driver conventions
MYSQL_DRIVER_MODULES = ("pymysql", "MySQLdb", "mysql")


@register_error_wrapper
def wrap_mysql_error(err: BaseException) -> Optional[Error]:
    """
    Recognize MySQL driver errors.

    PyMySQL and mysqlclient raise with args == (code, message);
    mysql-connector exposes errno and msg attributes.
    """
    module = type(err).__module__.split(".")[0]
    if module not in MYSQL_DRIVER_MODULES:
        return None

    errno = getattr(err, "errno", None)
    msg = getattr(err, "msg", None)
    if isinstance(errno, int) and errno > 0 and isinstance(msg, str):
        return Error(errno, msg)

    args = getattr(err, "args", ())
    if len(args) >= 2 and isinstance(args[0], int) and isinstance(args[1], str):
        return Error(args[0], args[1])
    return None


def wrap_error(err: Optional[BaseException]) -> Optional[Error]:
    """Normalize any error value into a portable Error."""
    if err is None:
        return None
    if isinstance(err, Error):
        return err

    for wrapper in ERROR_WRAPPERS:
        wrapped = wrapper(err)
        if wrapped is not None:
            return wrapped

    logger.debug("Unclassified error %s: %s", type(err).__name__, err)
    return Error(UNCLASSIFIED, str(err))
