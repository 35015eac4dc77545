"""Serializers built on the field-indexed codec."""

from __future__ import annotations

from typing import AbstractSet, Generic, Protocol, Set, TypeVar

from .pof import PofReader, PofWriter

T = TypeVar("T")


class PofSerializer(Protocol, Generic[T]):
    """Contract for objects that encode a value to and from a POF stream."""

    def serialize(self, out: PofWriter, value: T) -> None:
        ...

    def deserialize(self, reader: PofReader) -> T:
        ...


class SetSerializer:
    """Encodes a set as the collection at field 0 followed by the terminator."""

    def serialize(self, out: PofWriter, value: AbstractSet) -> None:
        out.write_collection(0, value)
        out.write_remainder(None)

    def deserialize(self, reader: PofReader) -> Set:
        result: Set = reader.read_collection(0, set())
        reader.read_remainder()
        return result


def encode(value: AbstractSet, serializer: SetSerializer | None = None) -> bytes:
    writer = PofWriter()
    (serializer or SetSerializer()).serialize(writer, value)
    return writer.getvalue()


def decode(data: bytes, serializer: SetSerializer | None = None) -> Set:
    return (serializer or SetSerializer()).deserialize(PofReader(data))


__all__ = ["PofSerializer", "SetSerializer", "decode", "encode"]
