"""Request and response messages exchanged with the daemons.

Binary layout (all integers big-endian):

- Every message starts with a ``u8`` tag (``RequestKind`` / ``ResponseKind``).
- Strings are a ``u32`` byte length followed by UTF-8 bytes.
- Durations are ``u64`` seconds followed by ``u32`` nanoseconds.
- A timer snapshot is two durations: elapsed, then interval.
- A list is a ``u32`` count followed by ``count`` (name, snapshot) pairs.
- An error carries a single ``u8`` (``ErrorKind``).

Bytes left over after a complete message make the message invalid.
"""

import struct
from dataclasses import dataclass
from datetime import timedelta
from enum import IntEnum
from typing import Optional

from movebeam.core.timers import TimerSnapshot
from movebeam.daemon.ipc import ProtocolError

_U8 = struct.Struct(">B")
_U32 = struct.Struct(">I")
_DURATION = struct.Struct(">QI")

_NANOS_PER_SECOND = 1_000_000_000


class WireDuration(timedelta):
    """A decoded duration that keeps the nanoseconds below timedelta's resolution.

    Behaves as a plain ``timedelta`` (rounded down to the microsecond);
    ``extra_nanoseconds`` is written back out on re-encoding.
    """

    extra_nanoseconds: int

    def __new__(cls, seconds: int, nanoseconds: int = 0) -> "WireDuration":
        self = super().__new__(cls, seconds=seconds, microseconds=nanoseconds // 1000)
        self.extra_nanoseconds = nanoseconds % 1000
        return self

    def __reduce__(self):  # type: ignore[no-untyped-def]
        seconds = self.days * 86400 + self.seconds
        return type(self), (seconds, self.microseconds * 1000 + self.extra_nanoseconds)


class RequestKind(IntEnum):
    """Request discriminants."""

    LIST = 0
    GET = 1
    RESET = 2
    RESET_ALL = 3
    UPTIME = 4
    INACTIVITY_DURATION = 5


class ResponseKind(IntEnum):
    """Response discriminants."""

    OK = 0
    DURATION = 1
    TIMER = 2
    LIST = 3
    ERROR = 4


class ErrorKind(IntEnum):
    """Error discriminants carried by ``ResponseKind.ERROR``."""

    NOT_FOUND = 0


class _Reader:
    """Sequential reader over a message buffer."""

    def __init__(self, data: bytes):
        self._data = data
        self._offset = 0

    def _unpack(self, fmt: struct.Struct) -> tuple:
        end = self._offset + fmt.size
        if end > len(self._data):
            raise ProtocolError("Truncated message")
        values = fmt.unpack_from(self._data, self._offset)
        self._offset = end
        return values

    def u8(self) -> int:
        return int(self._unpack(_U8)[0])

    def u32(self) -> int:
        return int(self._unpack(_U32)[0])

    def string(self) -> str:
        length = self.u32()
        end = self._offset + length
        if end > len(self._data):
            raise ProtocolError("Truncated string")
        raw = self._data[self._offset : end]
        self._offset = end
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolError(f"Invalid UTF-8 string: {e}")

    def duration(self) -> timedelta:
        seconds, nanos = self._unpack(_DURATION)
        if nanos >= _NANOS_PER_SECOND:
            raise ProtocolError(f"Invalid nanoseconds: {nanos}")
        try:
            return WireDuration(seconds, nanos)
        except OverflowError:
            raise ProtocolError(f"Duration out of range: {seconds}s")

    def snapshot(self) -> TimerSnapshot:
        return TimerSnapshot(elapsed=self.duration(), interval=self.duration())

    def finish(self) -> None:
        if self._offset != len(self._data):
            raise ProtocolError(f"{len(self._data) - self._offset} trailing bytes")


def _pack_string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return _U32.pack(len(raw)) + raw


def _pack_duration(value: timedelta) -> bytes:
    if value < timedelta():
        raise ValueError(f"Cannot encode negative duration: {value}")
    seconds = value.days * 86400 + value.seconds
    nanos = value.microseconds * 1000 + getattr(value, "extra_nanoseconds", 0)
    return _DURATION.pack(seconds, nanos)


def _pack_snapshot(snapshot: TimerSnapshot) -> bytes:
    return _pack_duration(snapshot.elapsed) + _pack_duration(snapshot.interval)


def _read_kind(reader: _Reader, enum: type, what: str):  # type: ignore[no-untyped-def]
    tag = reader.u8()
    try:
        return enum(tag)
    except ValueError:
        raise ProtocolError(f"Unknown {what} tag: {tag}")


@dataclass(frozen=True)
class Request:
    """A client request."""

    kind: RequestKind
    name: Optional[str] = None

    @classmethod
    def list(cls) -> "Request":
        return cls(RequestKind.LIST)

    @classmethod
    def get(cls, name: str) -> "Request":
        return cls(RequestKind.GET, name)

    @classmethod
    def reset(cls, name: str) -> "Request":
        return cls(RequestKind.RESET, name)

    @classmethod
    def reset_all(cls) -> "Request":
        return cls(RequestKind.RESET_ALL)

    @classmethod
    def uptime(cls) -> "Request":
        return cls(RequestKind.UPTIME)

    @classmethod
    def inactivity_duration(cls) -> "Request":
        return cls(RequestKind.INACTIVITY_DURATION)

    def encode(self) -> bytes:
        """Serialize the request."""
        data = _U8.pack(self.kind)
        if self.kind in (RequestKind.GET, RequestKind.RESET):
            if self.name is None:
                raise ValueError(f"{self.kind.name} request requires a timer name")
            data += _pack_string(self.name)
        return data

    @classmethod
    def decode(cls, data: bytes) -> "Request":
        """Parse a serialized request.

        Raises:
            ProtocolError: If the bytes are not a valid request
        """
        reader = _Reader(data)
        kind = _read_kind(reader, RequestKind, "request")
        name = reader.string() if kind in (RequestKind.GET, RequestKind.RESET) else None
        reader.finish()
        return cls(kind, name)


@dataclass(frozen=True)
class Response:
    """A daemon response.

    Only the field matching ``kind`` is populated.
    """

    kind: ResponseKind
    duration: Optional[timedelta] = None
    timer: Optional[TimerSnapshot] = None
    timers: tuple[tuple[str, TimerSnapshot], ...] = ()
    error: Optional[ErrorKind] = None

    @classmethod
    def ok(cls) -> "Response":
        return cls(ResponseKind.OK)

    @classmethod
    def from_duration(cls, duration: timedelta) -> "Response":
        return cls(ResponseKind.DURATION, duration=duration)

    @classmethod
    def from_timer(cls, snapshot: TimerSnapshot) -> "Response":
        return cls(ResponseKind.TIMER, timer=snapshot)

    @classmethod
    def from_list(cls, timers: list[tuple[str, TimerSnapshot]]) -> "Response":
        return cls(ResponseKind.LIST, timers=tuple(timers))

    @classmethod
    def not_found(cls) -> "Response":
        return cls(ResponseKind.ERROR, error=ErrorKind.NOT_FOUND)

    @property
    def is_error(self) -> bool:
        return self.kind is ResponseKind.ERROR

    def encode(self) -> bytes:
        """Serialize the response."""
        data = _U8.pack(self.kind)
        if self.kind is ResponseKind.DURATION:
            if self.duration is None:
                raise ValueError("DURATION response requires a duration")
            data += _pack_duration(self.duration)
        elif self.kind is ResponseKind.TIMER:
            if self.timer is None:
                raise ValueError("TIMER response requires a timer snapshot")
            data += _pack_snapshot(self.timer)
        elif self.kind is ResponseKind.LIST:
            data += _U32.pack(len(self.timers))
            for name, snapshot in self.timers:
                data += _pack_string(name) + _pack_snapshot(snapshot)
        elif self.kind is ResponseKind.ERROR:
            if self.error is None:
                raise ValueError("ERROR response requires an error kind")
            data += _U8.pack(self.error)
        return data

    @classmethod
    def decode(cls, data: bytes) -> "Response":
        """Parse a serialized response.

        Raises:
            ProtocolError: If the bytes are not a valid response
        """
        reader = _Reader(data)
        kind = _read_kind(reader, ResponseKind, "response")
        if kind is ResponseKind.OK:
            response = cls.ok()
        elif kind is ResponseKind.DURATION:
            response = cls.from_duration(reader.duration())
        elif kind is ResponseKind.TIMER:
            response = cls.from_timer(reader.snapshot())
        elif kind is ResponseKind.LIST:
            count = reader.u32()
            timers = []
            for _ in range(count):
                name = reader.string()
                timers.append((name, reader.snapshot()))
            response = cls.from_list(timers)
        else:
            response = cls(kind, error=_read_kind(reader, ErrorKind, "error"))
        reader.finish()
        return response
