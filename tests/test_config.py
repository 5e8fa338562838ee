import uuid

import pytest

from siren.config import Config


def test_proxy_addr_defaults_to_host():
    config = Config(uuid=uuid.uuid4(), host="edge.example.com")
    assert config.proxy_addr == "edge.example.com"
    assert config.proxy_port == 443


def test_explicit_proxy_address_kept():
    config = Config(uuid=uuid.uuid4(), host="edge.example.com",
                    proxy_addr="relay.example.com", proxy_port=8443)
    assert config.proxy_addr == "relay.example.com"
    assert config.proxy_port == 8443


def test_uuid_string_is_parsed():
    text = "96850032-1b92-46e9-a4f2-b99631456894"
    config = Config(uuid=text, host="example.com")
    assert config.uuid == uuid.UUID(text)


def test_invalid_uuid_becomes_nil():
    config = Config(uuid="not-a-uuid", host="example.com")
    assert config.uuid == uuid.UUID(int=0)


@pytest.mark.parametrize("port", [-1, 65536])
def test_port_out_of_range(port):
    with pytest.raises(ValueError):
        Config(uuid=uuid.uuid4(), host="example.com", proxy_port=port)


def test_urls_stored():
    config = Config(uuid=uuid.uuid4(), host="example.com",
                    main_page_url="https://example.com/main",
                    sub_page_url="https://example.com/sub")
    assert (config.main_page_url, config.sub_page_url) == (
        "https://example.com/main", "https://example.com/sub")