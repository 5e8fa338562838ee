# siren

siren is an asyncio library for the server side of a WebSocket tunnel. It
reads the binary messages of a WebSocket as one byte stream, detects whether
the client speaks VLESS, VMess (AEAD), Trojan or Shadowsocks from the first
bytes it sends, parses the requested destination from the protocol header and
relays the traffic over TCP. If the destination cannot be reached, it tries a
configured fallback address next.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Usage

Wrap any WebSocket in a `ProxyStream` and hand it to `siren.protocols.process`:

```python
from siren.config import Config
from siren.protocols import process
from siren.stream import ProxyStream


async def handle(messages, send, close):
    config = Config(
        uuid="00000000-0000-4000-8000-000000000000",
        host="proxy.example.com",
    )
    stream = ProxyStream(config, messages, send, close)
    await process(stream)
```

- `messages` is an async iterable of incoming messages. Bytes-like messages
  carry data; anything else is skipped. The end of the iteration means the
  socket closed.
- `send(data)` is a coroutine function that delivers one outgoing binary
  message.
- `close()` is an optional coroutine function that shuts the socket down.
- An optional `resolver` coroutine function replaces the DNS-over-HTTPS call
  used for UDP requests.

### Configuration

`siren.config.Config` holds `uuid`, `host`, `proxy_addr`, `proxy_port`,
`main_page_url` and `sub_page_url`. A `uuid` given as a string is parsed;
a string that is not a valid UUID becomes the nil UUID. `proxy_addr` defaults
to `host` and `proxy_port` to 443; a port outside 0–65535 raises `ValueError`.
The VMess handler uses `uuid` to derive its header keys, and every protocol
falls back to `proxy_addr:proxy_port` after the requested target.

### What `process` does

1. Buffers up to 62 bytes. If fewer than 31 arrive before the socket closes,
   it raises `ValueError("not enough buffer")`.
2. Picks the protocol with `siren.stream.detect_protocol`, which tries in order:
   VLESS (first byte zero), Shadowsocks (an address followed by a non-zero
   port), Trojan (CRLF right after a 56-byte hash) and, for any other
   non-empty data, VMess.
3. Reads the protocol header and, for TCP requests, relays to the requested
   target and then to the fallback address. Connection errors are logged, not
   raised. VLESS answers with two zero bytes before relaying; VMess writes its
   encrypted response length and header first. Shadowsocks is always relayed
   over TCP.
4. For UDP requests, one datagram of up to 65535 bytes is read and posted to
   `https://1.1.1.1/dns-query`; if that request succeeds, the datagram that
   was read is written back to the client.

### Lower-level pieces

- `siren.kdf.kdf(key, path)` — the VMess AEAD key derivation function.
- `siren.address.parse_addr(reader)` and `siren.address.parse_port(reader)` —
  coroutines that decode the address (type 1 IPv4, 2 or 3 length-prefixed
  domain, 4 IPv6) and big-endian port shared by all four protocols.
  `siren.address.ByteReader` gives in-memory bytes the same `readexactly`
  as a stream.
- `siren.stream.ProxyStream` — `read`, `readexactly`, `write`, `close`,
  `fill_buffer_until`, `peek_buffer`, `handle_tcp_outbound(addr, port)`
  (returns the bytes sent up and down) and `handle_udp_outbound()`. A single
  incoming message larger than 64 KiB makes `read` raise `OSError`.
- `siren.stream.is_vless`, `is_shadowsocks`, `is_trojan`, `is_vmess` and
  `detect_protocol` — classify the first bytes of a connection.
- `siren.protocols.process_vless`, `process_trojan`, `process_shadowsocks`
  and `connect_targets(stream, addr, port)`.
- `siren.vmess.aead_decrypt(stream, uuid)`, the coroutine
  `siren.vmess.parse_command(payload)` returning a `VmessCommand`, and
  `siren.vmess.response_header(key, iv, option)` returning the sealed
  response length and header; `process_vmess(stream)` ties them together.
- `siren.dns.doh(data)` — send a wire-format DNS query over HTTPS and return
  the answer.

## What it does not do

siren has no HTTP server and no command to start one. It does not accept
WebSocket upgrades itself, serve pages, generate share links for clients, or
look up fallback addresses from a country-coded proxy list. Those are left to
the application that embeds it: accept the WebSocket with the web framework of
your choice and pass its messages to a `ProxyStream`.