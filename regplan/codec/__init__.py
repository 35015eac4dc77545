"""Binary serialization codec used for registered types."""

from .pof import PofError, PofReader, PofWriter
from .serializers import PofSerializer, SetSerializer, decode, encode

__all__ = [
    "PofError",
    "PofReader",
    "PofSerializer",
    "PofWriter",
    "SetSerializer",
    "decode",
    "encode",
]
