"""
Result set container.

Events only talk to results through the ResultSetLike protocol: binary
encode/decode, content digest, row/column accessors, exec classification
and the string/pretty forms. ResultSet is the implementation used by the
codec.
"""

import hashlib
import struct
from dataclasses import dataclass
from typing import IO, Any, List, Optional, Protocol, Sequence, Tuple, Union

from .errors import ResultSetError


@dataclass(frozen=True)
class DigestOptions:
    """Options for ResultSet.data_digest."""
    sort: bool = False                       # sort rows before hashing
    ignore_columns: Tuple[str, ...] = ()     # column names left out of the digest


@dataclass(frozen=True)
class ColumnDef:
    """A result column."""
    name: str
    type: str = ""


@dataclass(frozen=True)
class ExecInfo:
    """Outcome of a statement that returns no rows."""
    rows_affected: int = 0
    last_insert_id: int = 0


class ResultSetLike(Protocol):
    """Capabilities the event layer needs from a result."""

    def encode(self) -> bytes: ...

    def data_digest(self, opts: DigestOptions) -> str: ...

    def is_exec_result(self) -> bool: ...

    def nrows(self) -> int: ...

    def ncols(self) -> int: ...

    def raw_value(self, row: int, col: int) -> Optional[bytes]: ...

    def pretty_print(self, w: IO[str]) -> None: ...


Cell = Optional[bytes]

_MAGIC = b"RS"
_VERSION = 1
_KIND_ROWS = 0
_KIND_EXEC = 1


def _to_cell(value: Any) -> Cell:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return str(value).encode("utf-8")


def _cell_text(cell: Cell) -> str:
    if cell is None:
        return "NULL"
    return cell.decode("utf-8", errors="replace")


class ResultSet:
    """
    Rows returned by a query, or the ExecInfo of a statement without rows.

    Cells are stored as raw bytes (None for NULL); anything else passed in
    is stored as the UTF-8 text of str(value).
    """

    def __init__(
        self,
        columns: Optional[Sequence[Union[str, ColumnDef]]] = None,
        rows: Optional[Sequence[Sequence[Any]]] = None,
        exec_info: Optional[ExecInfo] = None,
    ):
        if exec_info is not None and (columns or rows):
            raise ResultSetError("exec result cannot carry columns or rows")

        self.exec_info = exec_info
        self.columns: List[ColumnDef] = [
            c if isinstance(c, ColumnDef) else ColumnDef(str(c))
            for c in (columns or [])
        ]
        self.rows: List[List[Cell]] = []
        for i, row in enumerate(rows or []):
            if len(row) != len(self.columns):
                raise ResultSetError(
                    f"row {i} has {len(row)} cells, expected {len(self.columns)}"
                )
            self.rows.append([_to_cell(v) for v in row])

    @classmethod
    def from_exec(cls, rows_affected: int = 0, last_insert_id: int = 0) -> 'ResultSet':
        return cls(exec_info=ExecInfo(rows_affected, last_insert_id))

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    def is_exec_result(self) -> bool:
        return self.exec_info is not None

    def nrows(self) -> int:
        return len(self.rows)

    def ncols(self) -> int:
        return len(self.columns)

    def raw_value(self, row: int, col: int) -> Cell:
        """Return the raw cell at (row, col); None for NULL."""
        if not (0 <= row < len(self.rows) and 0 <= col < len(self.columns)):
            raise IndexError(f"cell ({row}, {col}) out of range")
        return self.rows[row][col]

    def __eq__(self, other) -> bool:
        if not isinstance(other, ResultSet):
            return NotImplemented
        return (
            self.exec_info == other.exec_info
            and self.columns == other.columns
            and self.rows == other.rows
        )

    def __str__(self) -> str:
        if self.exec_info is not None:
            return (
                f"rows affected: {self.exec_info.rows_affected}, "
                f"last insert id: {self.exec_info.last_insert_id}"
            )
        n = len(self.rows)
        return f"{n} row{'' if n == 1 else 's'} in set"

    def __repr__(self) -> str:
        return f"<ResultSet {self}>"

    # -------------------------------------------------------------------------
    # Digest
    # -------------------------------------------------------------------------

    def data_digest(self, opts: Optional[DigestOptions] = None) -> str:
        """SHA-256 of the row content. Row order counts unless opts.sort."""
        opts = opts or DigestOptions()
        keep = [
            j for j, c in enumerate(self.columns)
            if c.name not in opts.ignore_columns
        ]

        encoded_rows = []
        for row in self.rows:
            buf = bytearray()
            for j in keep:
                cell = row[j]
                if cell is None:
                    buf += b"\xff"
                else:
                    buf += b"\x00" + struct.pack(">I", len(cell)) + cell
            encoded_rows.append(bytes(buf))

        if opts.sort:
            encoded_rows.sort()

        h = hashlib.sha256()
        for data in encoded_rows:
            h.update(struct.pack(">I", len(data)))
            h.update(data)
        return h.hexdigest()

    # -------------------------------------------------------------------------
    # Binary Codec
    # -------------------------------------------------------------------------

    def encode(self) -> bytes:
        """Encode to the binary wire format."""
        try:
            return self._encode()
        except (struct.error, UnicodeEncodeError) as e:
            raise ResultSetError(f"cannot encode result set: {e}") from e

    def _encode(self) -> bytes:
        if self.exec_info is not None:
            return (
                struct.pack(">2sBB", _MAGIC, _VERSION, _KIND_EXEC)
                + struct.pack(">qq", self.exec_info.rows_affected, self.exec_info.last_insert_id)
            )

        out = bytearray(struct.pack(">2sBB", _MAGIC, _VERSION, _KIND_ROWS))
        out += struct.pack(">II", len(self.columns), len(self.rows))
        for col in self.columns:
            out += _pack_bytes(col.name.encode("utf-8"))
            out += _pack_bytes(col.type.encode("utf-8"))
        for row in self.rows:
            for cell in row:
                out += _pack_bytes(cell)
        return bytes(out)

    @classmethod
    def decode(cls, raw: bytes) -> 'ResultSet':
        """Decode from the binary wire format."""
        reader = _Reader(raw)
        magic, version, kind = reader.unpack(">2sBB")
        if magic != _MAGIC:
            raise ResultSetError("not a result set payload")
        if version != _VERSION:
            raise ResultSetError(f"unsupported result set version: {version}")

        if kind == _KIND_EXEC:
            rows_affected, last_insert_id = reader.unpack(">qq")
            reader.expect_end()
            return cls.from_exec(rows_affected, last_insert_id)
        if kind != _KIND_ROWS:
            raise ResultSetError(f"unknown result set kind: {kind}")

        ncols, nrows = reader.unpack(">II")
        columns = []
        for _ in range(ncols):
            name = reader.read_bytes()
            type_ = reader.read_bytes()
            if name is None or type_ is None:
                raise ResultSetError("column definition cannot be NULL")
            columns.append(ColumnDef(name.decode("utf-8"), type_.decode("utf-8")))
        rows = [[reader.read_bytes() for _ in range(ncols)] for _ in range(nrows)]
        reader.expect_end()
        return cls(columns, rows)

    # -------------------------------------------------------------------------
    # Pretty Printing
    # -------------------------------------------------------------------------

    def pretty_print(self, w: IO[str]) -> None:
        """Write the rows as an ASCII table, one line per row."""
        if self.exec_info is not None:
            w.write(str(self) + "\n")
            return

        texts = [[_cell_text(c) for c in row] for row in self.rows]
        widths = [len(c.name) for c in self.columns]
        for row in texts:
            for j, text in enumerate(row):
                widths[j] = max(widths[j], len(text))

        border = "+" + "+".join("-" * (n + 2) for n in widths) + "+\n"

        def line(cells: List[str]) -> str:
            return "|" + "|".join(f" {t.ljust(n)} " for t, n in zip(cells, widths)) + "|\n"

        w.write(border)
        w.write(line([c.name for c in self.columns]))
        w.write(border)
        for row in texts:
            w.write(line(row))
        w.write(border)


def _pack_bytes(data: Cell) -> bytes:
    if data is None:
        return struct.pack(">i", -1)
    return struct.pack(">i", len(data)) + data


class _Reader:
    """Cursor over an encoded payload."""

    def __init__(self, raw: bytes):
        self.raw = raw
        self.pos = 0

    def unpack(self, fmt: str) -> tuple:
        size = struct.calcsize(fmt)
        if self.pos + size > len(self.raw):
            raise ResultSetError("truncated result set payload")
        values = struct.unpack_from(fmt, self.raw, self.pos)
        self.pos += size
        return values

    def read_bytes(self) -> Cell:
        (n,) = self.unpack(">i")
        if n < 0:
            return None
        if self.pos + n > len(self.raw):
            raise ResultSetError("truncated result set payload")
        data = self.raw[self.pos:self.pos + n]
        self.pos += n
        return bytes(data)

    def expect_end(self):
        if self.pos != len(self.raw):
            raise ResultSetError(f"{len(self.raw) - self.pos} trailing bytes in result set payload")
