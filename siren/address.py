"""Reading the destination address and port shared by the proxy protocols."""

from __future__ import annotations

import asyncio
import ipaddress


class ByteReader:
    """An in-memory source with the same ``readexactly`` as a stream."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> bytes:
        return self._data[self._pos:]

    async def readexactly(self, n: int) -> bytes:
        chunk = self._data[self._pos:self._pos + n]
        if len(chunk) < n:
            self._pos = len(self._data)
            raise asyncio.IncompleteReadError(chunk, n)
        self._pos += n
        return chunk


def _format_ipv6(raw: bytes) -> str:
    address = ipaddress.IPv6Address(raw)
    mapped = address.ipv4_mapped
    if mapped is not None:
        return f"::ffff:{mapped}"
    return address.compressed


async def parse_addr(reader) -> str:
    """Read an address: type 1 IPv4, 2 or 3 length-prefixed domain, 4 IPv6."""
    (kind,) = await reader.readexactly(1)
    if kind == 1:
        return str(ipaddress.IPv4Address(await reader.readexactly(4)))
    if kind in (2, 3):
        (length,) = await reader.readexactly(1)
        domain = await reader.readexactly(length)
        return domain.decode("utf-8", errors="replace")
    if kind == 4:
        return _format_ipv6(await reader.readexactly(16))
    raise ValueError("invalid address")


async def parse_port(reader) -> int:
    """Read a big-endian 16-bit port."""
    return int.from_bytes(await reader.readexactly(2), "big")