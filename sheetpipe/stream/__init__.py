"""Binary record batch stream codec."""

from .codec import (
    InvalidStreamError,
    StreamError,
    StreamReader,
    StreamWriter,
    TruncatedStreamError,
    UnsupportedVersionError,
    decode,
    encode,
)

__all__ = [
    "StreamWriter",
    "StreamReader",
    "encode",
    "decode",
    "StreamError",
    "InvalidStreamError",
    "UnsupportedVersionError",
    "TruncatedStreamError",
]
