"""VLESS, Trojan and Shadowsocks handling, and dispatch by detected protocol."""

from __future__ import annotations

import logging

from .address import parse_addr, parse_port
from .stream import Protocol, ProxyStream, detect_protocol

logger = logging.getLogger(__name__)

PEEK_SIZE = 62
_MIN_PEEK = PEEK_SIZE // 2
_VLESS_RESPONSE = b"\x00\x00"
_TROJAN_HASH_SIZE = 56


async def connect_targets(stream: ProxyStream, addr: str, port: int) -> None:
    """Relay to the requested target, then to the configured proxy; errors are logged."""
    targets = [(addr, port), (stream.config.proxy_addr, stream.config.proxy_port)]
    for target_addr, target_port in targets:
        try:
            await stream.handle_tcp_outbound(target_addr, target_port)
        except Exception as exc:
            logger.error("error handling tcp: %s", exc)


async def _udp(stream: ProxyStream) -> None:
    try:
        await stream.handle_udp_outbound()
    except Exception as exc:
        logger.error("error handling udp: %s", exc)


async def process_vless(stream: ProxyStream) -> None:
    """Handle a VLESS request on ``stream``."""
    await stream.readexactly(1)  # version
    await stream.readexactly(16)  # user id
    (addons_length,) = await stream.readexactly(1)
    await stream.readexactly(addons_length)
    (network,) = await stream.readexactly(1)
    port = await parse_port(stream)
    addr = await parse_addr(stream)

    if network == 1:
        await stream.write(_VLESS_RESPONSE)
        await connect_targets(stream, addr, port)
    else:
        await _udp(stream)


async def process_trojan(stream: ProxyStream) -> None:
    """Handle a Trojan request on ``stream``."""
    await stream.readexactly(_TROJAN_HASH_SIZE)
    await stream.readexactly(2)  # CRLF
    (network,) = await stream.readexactly(1)
    addr = await parse_addr(stream)
    port = await parse_port(stream)
    await stream.readexactly(2)  # CRLF

    if network == 1:
        await connect_targets(stream, addr, port)
    else:
        await _udp(stream)


async def process_shadowsocks(stream: ProxyStream) -> None:
    """Handle a Shadowsocks request on ``stream``; always relayed over TCP."""
    addr = await parse_addr(stream)
    port = await parse_port(stream)
    await connect_targets(stream, addr, port)


async def process(stream: ProxyStream) -> None:
    """Detect the protocol of the first bytes on ``stream`` and handle it."""
    await stream.fill_buffer_until(PEEK_SIZE)
    peeked = stream.peek_buffer(PEEK_SIZE)
    if len(peeked) < _MIN_PEEK:
        raise ValueError("not enough buffer")

    protocol = detect_protocol(peeked)
    if protocol is None:
        raise ValueError("protocol not implemented")
    logger.info("%s detected!", protocol.value)

    if protocol is Protocol.VLESS:
        await process_vless(stream)
    elif protocol is Protocol.SHADOWSOCKS:
        await process_shadowsocks(stream)
    elif protocol is Protocol.TROJAN:
        await process_trojan(stream)
    else:
        from .vmess import process_vmess

        await process_vmess(stream)