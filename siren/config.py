"""Runtime configuration shared by the request handlers and the tunnel."""

from __future__ import annotations

import uuid as _uuid
from dataclasses import dataclass

DEFAULT_PROXY_PORT = 443


@dataclass
class Config:
    """Settings for one request.

    ``uuid`` may be given as a string; a string that is not a valid UUID
    becomes the nil UUID. ``proxy_addr`` falls back to ``host`` when not
    given.
    """

    uuid: _uuid.UUID
    host: str
    proxy_addr: str | None = None
    proxy_port: int = DEFAULT_PROXY_PORT
    main_page_url: str = ""
    sub_page_url: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.uuid, _uuid.UUID):
            try:
                self.uuid = _uuid.UUID(str(self.uuid))
            except ValueError:
                self.uuid = _uuid.UUID(int=0)
        if self.proxy_addr is None:
            self.proxy_addr = self.host
        if not 0 <= self.proxy_port <= 0xFFFF:
            raise ValueError(f"port out of range: {self.proxy_port}")