"""VMess AEAD request decoding and response header."""

from __future__ import annotations

import hashlib
import logging
import uuid as _uuid
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .address import ByteReader, parse_addr, parse_port
from .kdf import kdf
from .protocols import connect_targets
from .stream import ProxyStream

logger = logging.getLogger(__name__)

CMD_KEY_SALT = b"c48619fe-8f02-49e0-b9e9-edf763e17e21"

KDF_SALT_HEADER_LENGTH_KEY = b"VMess Header AEAD Key_Length"
KDF_SALT_HEADER_LENGTH_IV = b"VMess Header AEAD Nonce_Length"
KDF_SALT_HEADER_PAYLOAD_KEY = b"VMess Header AEAD Key"
KDF_SALT_HEADER_PAYLOAD_IV = b"VMess Header AEAD Nonce"
KDF_SALT_RESP_HEADER_LEN_KEY = b"AEAD Resp Header Len Key"
KDF_SALT_RESP_HEADER_LEN_IV = b"AEAD Resp Header Len IV"
KDF_SALT_RESP_HEADER_KEY = b"AEAD Resp Header Key"
KDF_SALT_RESP_HEADER_IV = b"AEAD Resp Header IV"

_TAG_SIZE = 16
_RESPONSE_HEADER_LENGTH = 4


@dataclass(frozen=True)
class VmessCommand:
    """The decrypted command section of a VMess request."""

    version: int
    iv: bytes
    key: bytes
    options: bytes
    command: int
    port: int
    address: str

    @property
    def is_tcp(self) -> bool:
        return self.command == 0x01


def _open(key: bytes, nonce: bytes, data: bytes, aad: bytes) -> bytes:
    try:
        return AESGCM(key).decrypt(nonce, data, aad)
    except InvalidTag as exc:
        raise ValueError("vmess header authentication failed") from exc


async def aead_decrypt(stream, uuid: _uuid.UUID) -> bytes:
    """Read and decrypt the AEAD-sealed command section from ``stream``."""
    cmd_key = hashlib.md5(uuid.bytes + CMD_KEY_SALT).digest()

    auth_id = await stream.readexactly(16)
    sealed_length = await stream.readexactly(18)
    nonce = await stream.readexactly(8)

    def derive(salt: bytes, size: int) -> bytes:
        return kdf(cmd_key, [salt, auth_id, nonce])[:size]

    length = _open(
        derive(KDF_SALT_HEADER_LENGTH_KEY, 16),
        derive(KDF_SALT_HEADER_LENGTH_IV, 12),
        sealed_length,
        auth_id,
    )
    header_length = int.from_bytes(length[:2], "big")

    sealed_header = await stream.readexactly(header_length + _TAG_SIZE)
    return _open(
        derive(KDF_SALT_HEADER_PAYLOAD_KEY, 16),
        derive(KDF_SALT_HEADER_PAYLOAD_IV, 12),
        sealed_header,
        auth_id,
    )


async def parse_command(payload: bytes) -> VmessCommand:
    """Decode the fields of a decrypted command section."""
    reader = ByteReader(payload)
    (version,) = await reader.readexactly(1)
    if version != 1:
        raise ValueError("invalid version")
    iv = await reader.readexactly(16)
    key = await reader.readexactly(16)
    options = await reader.readexactly(4)
    (command,) = await reader.readexactly(1)
    port = await parse_port(reader)
    address = await parse_addr(reader)
    return VmessCommand(version, iv, key, options, command, port, address)


def response_header(key: bytes, iv: bytes, option: int) -> tuple[bytes, bytes]:
    """Return the sealed length and sealed header of the response."""
    response_key = hashlib.sha256(key).digest()[:16]
    response_iv = hashlib.sha256(iv).digest()[:16]

    length_key = kdf(response_key, [KDF_SALT_RESP_HEADER_LEN_KEY])[:16]
    length_iv = kdf(response_iv, [KDF_SALT_RESP_HEADER_LEN_IV])[:12]
    length = AESGCM(length_key).encrypt(
        length_iv, _RESPONSE_HEADER_LENGTH.to_bytes(2, "big"), None
    )

    payload_key = kdf(response_key, [KDF_SALT_RESP_HEADER_KEY])[:16]
    payload_iv = kdf(response_iv, [KDF_SALT_RESP_HEADER_IV])[:12]
    header = AESGCM(payload_key).encrypt(payload_iv, bytes([option, 0, 0, 0]), None)
    return length, header


async def process_vmess(stream: ProxyStream) -> None:
    """Handle a VMess request on ``stream``."""
    payload = await aead_decrypt(stream, stream.config.uuid)
    command = await parse_command(payload)

    length, header = response_header(command.key, command.iv, command.options[0])
    await stream.write(length)
    await stream.write(header)

    if command.is_tcp:
        await connect_targets(stream, command.address, command.port)
    else:
        try:
            await stream.handle_udp_outbound()
        except Exception as exc:
            logger.error("error handling udp: %s", exc)