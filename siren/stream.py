"""A websocket-backed byte stream and the detection of the tunnelled protocol."""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, AsyncIterable, Awaitable, Callable, Optional

from . import dns
from .config import Config

logger = logging.getLogger(__name__)

MAX_WEBSOCKET_SIZE = 64 * 1024
UDP_READ_SIZE = 65535
_COPY_CHUNK = 16 * 1024


class Protocol(enum.Enum):
    """Protocols that can be carried over the websocket tunnel."""

    VLESS = "vless"
    SHADOWSOCKS = "shadowsocks"
    TROJAN = "trojan"
    VMESS = "vmess"


def is_vless(buffer: bytes) -> bool:
    """A VLESS request starts with a zero version byte."""
    return len(buffer) > 0 and buffer[0] == 0


def is_shadowsocks(buffer: bytes) -> bool:
    """A Shadowsocks request starts with an address followed by a non-zero port."""
    if not buffer:
        return False
    kind = buffer[0]
    if kind == 1:
        if len(buffer) < 7:
            return False
        return int.from_bytes(buffer[5:7], "big") != 0
    if kind == 3:
        if len(buffer) < 2:
            return False
        end = 2 + buffer[1]
        if len(buffer) < end + 2:
            return False
        return int.from_bytes(buffer[end:end + 2], "big") != 0
    if kind == 4:
        if len(buffer) < 19:
            return False
        return int.from_bytes(buffer[17:19], "big") != 0
    return False


def is_trojan(buffer: bytes) -> bool:
    """A Trojan request has CRLF right after the 56-byte password hash."""
    return len(buffer) > 57 and buffer[56] == 13 and buffer[57] == 10


def is_vmess(buffer: bytes) -> bool:
    """VMess is the fallback for any non-empty request."""
    return len(buffer) > 0


_DETECTORS = (
    (Protocol.VLESS, is_vless),
    (Protocol.SHADOWSOCKS, is_shadowsocks),
    (Protocol.TROJAN, is_trojan),
    (Protocol.VMESS, is_vmess),
)


def detect_protocol(buffer: bytes) -> Optional[Protocol]:
    """Return the first protocol whose check accepts ``buffer``, or None."""
    for protocol, check in _DETECTORS:
        if check(buffer):
            return protocol
    return None


Resolver = Callable[[bytes], Awaitable[bytes]]


class ProxyStream:
    """Reads the binary messages of a websocket as one byte stream.

    ``events`` is an async iterable of incoming messages; ending the
    iteration means the socket closed. Only bytes-like messages carry
    data, other messages are skipped. ``send`` delivers one outgoing
    binary message and ``close`` shuts the websocket down.
    """

    def __init__(
        self,
        config: Config,
        events: AsyncIterable[Any],
        send: Callable[[bytes], Awaitable[Any]],
        close: Optional[Callable[[], Awaitable[Any]]] = None,
        resolver: Optional[Resolver] = None,
    ) -> None:
        self.config = config
        self.buffer = bytearray()
        self._events = aiter(events)
        self._send = send
        self._close = close
        self._resolver = resolver if resolver is not None else dns.doh
        self._finished = False

    async def _next_message(self) -> Optional[bytes]:
        """Return the next data message, or None once the socket has closed."""
        while not self._finished:
            try:
                message = await anext(self._events)
            except StopAsyncIteration:
                self._finished = True
                break
            except OSError:
                raise
            except Exception as exc:
                raise OSError(str(exc)) from exc
            if isinstance(message, (bytes, bytearray, memoryview)):
                return bytes(message)
        return None

    async def fill_buffer_until(self, n: int) -> None:
        """Buffer incoming data until at least ``n`` bytes or the socket closes."""
        while len(self.buffer) < n:
            message = await self._next_message()
            if message is None:
                break
            self.buffer.extend(message)

    def peek_buffer(self, n: int) -> bytes:
        """Return up to ``n`` buffered bytes without consuming them."""
        return bytes(self.buffer[:n])

    async def read(self, n: int = -1) -> bytes:
        """Return up to ``n`` bytes; an empty result means end of stream."""
        while not self.buffer:
            message = await self._next_message()
            if message is None:
                return b""
            if len(message) > MAX_WEBSOCKET_SIZE:
                raise OSError("websocket buffer too long")
            self.buffer.extend(message)
        size = len(self.buffer) if n < 0 else min(n, len(self.buffer))
        chunk = bytes(self.buffer[:size])
        del self.buffer[:size]
        return chunk

    async def readexactly(self, n: int) -> bytes:
        """Return exactly ``n`` bytes or raise IncompleteReadError."""
        data = bytearray()
        while len(data) < n:
            chunk = await self.read(n - len(data))
            if not chunk:
                raise asyncio.IncompleteReadError(bytes(data), n)
            data.extend(chunk)
        return bytes(data)

    async def write(self, data: bytes) -> int:
        """Send ``data`` as one binary message and return its length."""
        payload = bytes(data)
        try:
            await self._send(payload)
        except OSError:
            raise
        except Exception as exc:
            raise OSError(str(exc)) from exc
        return len(payload)

    async def close(self) -> None:
        """Close the websocket."""
        if self._close is None:
            return
        try:
            await self._close()
        except OSError:
            raise
        except Exception as exc:
            raise OSError(str(exc)) from exc

    async def _pump_up(self, writer: asyncio.StreamWriter) -> int:
        total = 0
        while chunk := await self.read(_COPY_CHUNK):
            writer.write(chunk)
            await writer.drain()
            total += len(chunk)
        if writer.can_write_eof():
            writer.write_eof()
        return total

    async def _pump_down(self, reader: asyncio.StreamReader) -> int:
        total = 0
        while data := await reader.read(_COPY_CHUNK):
            await self.write(data)
            total += len(data)
        await self.close()
        return total

    async def handle_tcp_outbound(self, addr: str, port: int) -> tuple[int, int]:
        """Connect to ``addr:port`` and relay both directions until both end.

        Returns the byte counts sent upstream and downstream.
        """
        reader, writer = await asyncio.open_connection(addr, port)
        try:
            up_task = asyncio.ensure_future(self._pump_up(writer))
            down_task = asyncio.ensure_future(self._pump_down(reader))
            done, pending = await asyncio.wait(
                {up_task, down_task}, return_when=asyncio.FIRST_EXCEPTION
            )
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                exc = task.exception()
                if exc is not None:
                    raise OSError(str(exc)) from exc
            up, down = up_task.result(), down_task.result()
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass
        logger.info("copied data from %s:%s, up: %d bytes and dl: %d bytes", addr, port, up, down)
        return up, down

    async def handle_udp_outbound(self) -> None:
        """Forward one datagram to DNS over HTTPS; echo it back if that succeeds."""
        data = await self.read(UDP_READ_SIZE)
        try:
            await self._resolver(data)
        except Exception as exc:
            logger.debug("dns over https failed: %s", exc)
            return
        await self.write(data)