"""Field-indexed binary writer and reader.

Each value is written as ``>i`` field index, a one-byte type tag and the
payload. Field indices must strictly increase within a stream; the
remainder terminator is the reserved index ``-1``.
"""

from __future__ import annotations

import io
import struct
from typing import Any, BinaryIO, Iterable, MutableSet, Optional, Union

_INDEX = struct.Struct(">i")
_LENGTH = struct.Struct(">I")
_INT = struct.Struct(">q")
_FLOAT = struct.Struct(">d")

TERMINATOR = -1

T_NULL = 0
T_STRING = 1
T_INT = 2
T_COLLECTION = 3
T_BOOL = 4
T_FLOAT = 5

Scalar = Union[None, str, int, float, bool]


class PofError(ValueError):
    """Raised for malformed or out-of-order streams."""


class PofWriter:
    """Writes indexed fields to a binary stream."""

    def __init__(self, stream: Optional[BinaryIO] = None) -> None:
        self.stream: BinaryIO = stream if stream is not None else io.BytesIO()
        self._last_index = -1
        self._closed = False

    def write_string(self, index: int, value: Optional[str]) -> None:
        self._begin(index)
        self._write_value(value)

    def write_int(self, index: int, value: int) -> None:
        self._begin(index)
        self._write_value(int(value))

    def write_collection(self, index: int, items: Iterable[Scalar]) -> None:
        self._begin(index)
        self._write_value(list(items))

    def write_remainder(self, remainder: Optional[bytes]) -> None:
        """Finish the stream; ``remainder`` is accepted for API symmetry and must be empty."""
        if self._closed:
            raise PofError("Stream already terminated")
        if remainder:
            raise PofError("Opaque remainders are not supported")
        self.stream.write(_INDEX.pack(TERMINATOR))
        self._closed = True

    def getvalue(self) -> bytes:
        if not isinstance(self.stream, io.BytesIO):
            raise PofError("getvalue() requires an in-memory stream")
        return self.stream.getvalue()

    def _begin(self, index: int) -> None:
        if self._closed:
            raise PofError("Cannot write after the remainder terminator")
        if index <= self._last_index:
            raise PofError(f"Field index {index} must be greater than {self._last_index}")
        self._last_index = index
        self.stream.write(_INDEX.pack(index))

    def _write_value(self, value: Any) -> None:
        write = self.stream.write
        if value is None:
            write(bytes((T_NULL,)))
        elif isinstance(value, bool):
            write(bytes((T_BOOL, int(value))))
        elif isinstance(value, int):
            write(bytes((T_INT,)) + _INT.pack(value))
        elif isinstance(value, float):
            write(bytes((T_FLOAT,)) + _FLOAT.pack(value))
        elif isinstance(value, str):
            encoded = value.encode("utf-8")
            write(bytes((T_STRING,)) + _LENGTH.pack(len(encoded)) + encoded)
        elif isinstance(value, (list, tuple, set, frozenset)):
            write(bytes((T_COLLECTION,)) + _LENGTH.pack(len(value)))
            for item in value:
                self._write_value(item)
        else:
            raise PofError(f"Unsupported value type: {type(value).__name__}")


class PofReader:
    """Reads indexed fields written by :class:`PofWriter`."""

    def __init__(self, data: Union[bytes, BinaryIO]) -> None:
        self.stream: BinaryIO = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
        self._pending: Optional[int] = None
        self._last_index = -1

    def read_string(self, index: int) -> Optional[str]:
        if not self._seek(index):
            return None
        value = self._read_value()
        if value is not None and not isinstance(value, str):
            raise PofError(f"Field {index} is not a string")
        return value

    def read_int(self, index: int) -> int:
        if not self._seek(index):
            return 0
        value = self._read_value()
        if not isinstance(value, int) or isinstance(value, bool):
            raise PofError(f"Field {index} is not an integer")
        return value

    def read_collection(self, index: int, into: MutableSet) -> MutableSet:
        """Add the collection at ``index`` to ``into``; a missing field leaves it unchanged."""
        if not self._seek(index):
            return into
        value = self._read_value()
        if value is None:
            return into
        if not isinstance(value, list):
            raise PofError(f"Field {index} is not a collection")
        for item in value:
            into.add(_freeze(item))
        return into

    def read_remainder(self) -> None:
        """Skip any unread fields and consume the terminator."""
        while True:
            index = self._next_index()
            if index == TERMINATOR:
                self._pending = None
                return
            self._pending = None
            self._read_value()

    def _next_index(self) -> int:
        if self._pending is None:
            self._pending = _INDEX.unpack(self._read_exact(_INDEX.size))[0]
        return self._pending

    def _seek(self, index: int) -> bool:
        if index <= self._last_index:
            raise PofError(f"Field {index} requested after field {self._last_index}")
        self._last_index = index
        while True:
            current = self._next_index()
            if current == TERMINATOR or current > index:
                return False
            self._pending = None
            if current == index:
                return True
            self._read_value()

    def _read_value(self) -> Any:
        tag = self._read_exact(1)[0]
        if tag == T_NULL:
            return None
        if tag == T_BOOL:
            return bool(self._read_exact(1)[0])
        if tag == T_INT:
            return _INT.unpack(self._read_exact(_INT.size))[0]
        if tag == T_FLOAT:
            return _FLOAT.unpack(self._read_exact(_FLOAT.size))[0]
        if tag == T_STRING:
            length = _LENGTH.unpack(self._read_exact(_LENGTH.size))[0]
            return self._read_exact(length).decode("utf-8")
        if tag == T_COLLECTION:
            count = _LENGTH.unpack(self._read_exact(_LENGTH.size))[0]
            return [self._read_value() for _ in range(count)]
        raise PofError(f"Unknown type tag {tag}")

    def _read_exact(self, size: int) -> bytes:
        chunk = self.stream.read(size)
        if len(chunk) != size:
            raise PofError("Unexpected end of stream")
        return chunk


def _freeze(value: Any) -> Any:
    """Turn decoded lists back into hashable tuples at every depth."""
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


__all__ = ["PofError", "PofReader", "PofWriter", "TERMINATOR"]
