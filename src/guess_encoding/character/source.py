"""Byte source adaptation shared by the prober and the transliterator.

Both components consume their input exactly once, front to back. Sources are
therefore turned into an iterator of byte chunks without ever seeking, which
keeps pipes and sockets on an equal footing with files and in-memory buffers.
"""

import io
from typing import Any, BinaryIO, Iterable, Iterator, Optional, Union

DEFAULT_CHUNK_SIZE = 8192

# Type definitions for input data
InputType = Union[bytes, bytearray, memoryview, BinaryIO, Iterable[bytes], Iterable[int]]


class UnreadableSourceError(OSError):
    """Raised when the underlying byte source fails mid-stream.

    Attributes:
        partial: Whatever was accumulated before the failure (probe counters or
            transliterated text). It stays valid and usable.
    """

    def __init__(self, message: str, partial: Optional[Any] = None) -> None:
        super().__init__(message)
        self.partial = partial


def describe_source(source: Any, default: str = "<stream>") -> str:
    """Return a human readable label for a byte source."""
    name = getattr(source, "name", None)
    if name is None or isinstance(name, int):
        return default
    return str(name)


def iter_chunks(source: InputType, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield the content of ``source`` as a sequence of byte chunks.

    Args:
        source: Bytes-like object, binary file-like object with ``read()``, or
            an iterable of byte chunks or byte values
        chunk_size: Read size for file-like sources

    Yields:
        Non-empty byte chunks in source order

    Raises:
        TypeError: If the source produces text instead of bytes
        OSError: Propagated unchanged from the source's own reads
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        if source:
            yield bytes(source)
        return

    if isinstance(source, (str, io.TextIOBase)):
        raise TypeError(
            f"Expected a byte source, got {type(source).__name__}; "
            "open files in binary mode or encode text first"
        )

    read = getattr(source, "read", None)
    if callable(read):
        while True:
            chunk = read(chunk_size)
            if not chunk:
                return
            if isinstance(chunk, str):
                raise TypeError("Source returned text; open it in binary mode")
            yield bytes(chunk)

    try:
        iterator = iter(source)
    except TypeError:
        raise TypeError(
            f"Unsupported byte source type: {type(source).__name__}"
        ) from None

    for item in iterator:
        if isinstance(item, int):
            yield bytes((item,))
        elif isinstance(item, str):
            raise TypeError("Source iterable produced text instead of bytes")
        elif item:
            yield bytes(item)
