"""DNS over HTTPS forwarding for UDP DNS queries."""

from __future__ import annotations

import aiohttp

DOH_URL = "https://1.1.1.1/dns-query"
_DNS_MESSAGE = "application/dns-message"


async def doh(data: bytes) -> bytes:
    """Send a wire-format DNS query and return the raw response body."""
    headers = {"Content-Type": _DNS_MESSAGE, "Accept": _DNS_MESSAGE}
    async with aiohttp.ClientSession() as session:
        async with session.post(DOH_URL, data=bytes(data), headers=headers) as response:
            return await response.read()