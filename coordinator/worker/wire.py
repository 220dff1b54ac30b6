"""Typed read/write layer over the worker connection's byte streams.

All integers are big-endian, strings and byte blobs are prefixed with a
4-byte signed length, pydantic models travel as JSON strings.
"""

from __future__ import annotations

import struct
from typing import BinaryIO, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import FramingError

_BYTE = struct.Struct(">b")
_INT = struct.Struct(">i")

M = TypeVar("M", bound=BaseModel)


class DataWriter:
    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def write_byte(self, value: int) -> None:
        self._stream.write(_BYTE.pack(value))

    def write_int(self, value: int) -> None:
        self._stream.write(_INT.pack(value))

    def write_bool(self, value: bool) -> None:
        self.write_byte(1 if value else 0)

    def write_bytes(self, data: bytes) -> None:
        self.write_int(len(data))
        self._stream.write(data)

    def write_string(self, value: str) -> None:
        self.write_bytes(value.encode("utf-8"))

    def write_model(self, model: BaseModel) -> None:
        self.write_string(model.model_dump_json())

    def flush(self) -> None:
        self._stream.flush()


class DataReader:
    """Reads the values written by DataWriter.

    A stream that ends early raises EOFError; the session treats that like
    any other I/O failure.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def _read_exact(self, size: int) -> bytes:
        chunks: list[bytes] = []
        remaining = size
        while remaining > 0:
            chunk = self._stream.read(remaining)
            if not chunk:
                raise EOFError(f"stream closed with {remaining} of {size} bytes unread")
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def read_byte(self) -> int:
        return _BYTE.unpack(self._read_exact(_BYTE.size))[0]

    def read_int(self) -> int:
        return _INT.unpack(self._read_exact(_INT.size))[0]

    def read_bool(self) -> bool:
        return self.read_byte() != 0

    def read_bytes(self) -> bytes:
        size = self.read_int()
        if size < 0:
            raise FramingError(f"negative length prefix {size}")
        return self._read_exact(size)

    def read_string(self) -> str:
        data = self.read_bytes()
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FramingError(f"string field is not valid UTF-8: {exc.reason}") from exc

    def read_model(self, model_cls: type[M]) -> M:
        raw = self.read_string()
        try:
            return model_cls.model_validate_json(raw)
        except ValidationError as exc:
            raise FramingError(
                f"invalid {model_cls.__name__} payload ({exc.error_count()} errors)"
            ) from exc
