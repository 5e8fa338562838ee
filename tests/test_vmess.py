import asyncio
import contextlib
import hashlib
import socket
import uuid

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from siren.config import Config
from siren.kdf import kdf
from siren.stream import ProxyStream
from siren.vmess import (
    CMD_KEY_SALT,
    KDF_SALT_HEADER_LENGTH_IV,
    KDF_SALT_HEADER_LENGTH_KEY,
    KDF_SALT_HEADER_PAYLOAD_IV,
    KDF_SALT_HEADER_PAYLOAD_KEY,
    VmessCommand,
    aead_decrypt,
    parse_command,
    process_vmess,
    response_header,
)

USER = uuid.UUID("96850032-1b92-46e9-a4f2-b99631456894")
OTHER_USER = uuid.UUID("00000000-0000-4000-8000-000000000001")
DATA_IV = bytes(range(16))
DATA_KEY = bytes(range(16, 32))


def closed_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def make_stream(messages, user=USER):
    sent = []

    async def events():
        for message in messages:
            yield message

    async def send(data):
        sent.append(data)

    async def close():
        pass

    config = Config(uuid=user, host="127.0.0.1", proxy_addr="127.0.0.1", proxy_port=closed_port())
    return ProxyStream(config, events(), send, close), sent


def seal_request(user, command, auth_id=b"\x77" * 16, nonce=b"\x01" * 8):
    cmd_key = hashlib.md5(user.bytes + CMD_KEY_SALT).digest()

    def seal(key_salt, iv_salt, plain):
        key = kdf(cmd_key, [key_salt, auth_id, nonce])[:16]
        iv = kdf(cmd_key, [iv_salt, auth_id, nonce])[:12]
        return AESGCM(key).encrypt(iv, plain, auth_id)

    length = seal(KDF_SALT_HEADER_LENGTH_KEY, KDF_SALT_HEADER_LENGTH_IV, len(command).to_bytes(2, "big"))
    body = seal(KDF_SALT_HEADER_PAYLOAD_KEY, KDF_SALT_HEADER_PAYLOAD_IV, command)
    return auth_id + length + nonce + body


def command_bytes(port, version=1, cmd=1, option=0x2A):
    return (
        bytes([version])
        + DATA_IV
        + DATA_KEY
        + bytes([option, 1, 0, 0])
        + bytes([cmd])
        + port.to_bytes(2, "big")
        + b"\x01\x7f\x00\x00\x01"
        + b"\x00\x00\x00\x00"
    )


async def _echo(reader, writer):
    while data := await reader.read(4096):
        writer.write(data)
        await writer.drain()
    writer.close()


@contextlib.asynccontextmanager
async def echo_server():
    server = await asyncio.start_server(_echo, "127.0.0.1", 0)
    try:
        yield server.sockets[0].getsockname()[1]
    finally:
        server.close()
        await server.wait_closed()


def test_kdf_auth_id_key():
    key = hashlib.md5(USER.bytes + b"c48619fe-8f02-49e0-b9e9-edf763e17e21").digest()
    result = kdf(key, [b"AES Auth ID Encryption"])
    assert list(result[:16]) == [117, 82, 144, 159, 147, 65, 74, 253, 91, 74, 70, 84, 114, 118, 203, 30]


@pytest.mark.asyncio
async def test_aead_decrypt_round_trip():
    command = command_bytes(8080)
    stream, _ = make_stream([seal_request(USER, command) + b"rest"])
    assert await aead_decrypt(stream, USER) == command
    assert await stream.read() == b"rest"


@pytest.mark.asyncio
async def test_aead_decrypt_wrong_user():
    stream, _ = make_stream([seal_request(USER, command_bytes(8080))])
    with pytest.raises(ValueError):
        await aead_decrypt(stream, OTHER_USER)


@pytest.mark.asyncio
async def test_parse_command_fields():
    command = await parse_command(command_bytes(8080))
    assert command == VmessCommand(1, DATA_IV, DATA_KEY, bytes([0x2A, 1, 0, 0]), 1, 8080, "127.0.0.1")
    assert command.is_tcp


@pytest.mark.asyncio
async def test_parse_command_udp():
    command = await parse_command(command_bytes(53, cmd=2))
    assert not command.is_tcp
    assert command.port == 53


@pytest.mark.asyncio
async def test_parse_command_bad_version():
    with pytest.raises(ValueError, match="invalid version"):
        await parse_command(command_bytes(8080, version=2))


def test_response_header_shape():
    length, header = response_header(DATA_KEY, DATA_IV, 0x2A)
    assert len(length) == 2 + 16
    assert len(header) == 4 + 16
    assert response_header(DATA_KEY, DATA_IV, 0x2A) == (length, header)
    other_length, other_header = response_header(DATA_KEY, DATA_IV, 0x2B)
    assert other_length == length
    assert other_header != header


@pytest.mark.asyncio
async def test_process_vmess_relays():
    async with echo_server() as port:
        request = seal_request(USER, command_bytes(port)) + b"ping"
        stream, sent = make_stream([request])
        await process_vmess(stream)
    assert tuple(sent[:2]) == response_header(DATA_KEY, DATA_IV, 0x2A)
    assert b"".join(sent[2:]) == b"ping"