"""Protocol detection and relaying for a WebSocket tunnel carrying VLESS, VMess, Trojan and Shadowsocks."""

__version__ = "0.1.0"