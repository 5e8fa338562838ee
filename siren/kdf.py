"""Key derivation used by the VMess AEAD header: nested HMAC-SHA256."""

from __future__ import annotations

import hashlib

_ROOT_KEY = b"VMess AEAD KDF"
_BLOCK_SIZE = 64


class _Sha256:
    def __init__(self, state=None) -> None:
        self._state = state if state is not None else hashlib.sha256()

    def copy(self) -> "_Sha256":
        return _Sha256(self._state.copy())

    def update(self, data: bytes) -> None:
        self._state.update(data)

    def digest(self) -> bytes:
        return self._state.digest()


class _RecursiveHash:
    """HMAC whose underlying hash is any object with copy/update/digest."""

    def __init__(self, key: bytes, base) -> None:
        if len(key) > _BLOCK_SIZE:
            raise ValueError(f"key longer than {_BLOCK_SIZE} bytes")
        padded = bytes(key).ljust(_BLOCK_SIZE, b"\x00")
        ipad = bytes(b ^ 0x36 for b in padded)
        self._opad = bytes(b ^ 0x5C for b in padded)
        self._inner = base.copy()
        self._inner.update(ipad)
        self._outer = base

    def copy(self) -> "_RecursiveHash":
        clone = object.__new__(_RecursiveHash)
        clone._inner = self._inner.copy()
        clone._outer = self._outer.copy()
        clone._opad = self._opad
        return clone

    def update(self, data: bytes) -> None:
        self._inner.update(data)

    def digest(self) -> bytes:
        inner_digest = self._inner.digest()
        outer = self._outer.copy()
        outer.update(self._opad)
        outer.update(inner_digest)
        return outer.digest()


def kdf(key: bytes, path) -> bytes:
    """Derive a 32-byte key from ``key`` along the salts in ``path``."""
    current = _RecursiveHash(_ROOT_KEY, _Sha256())
    for salt in path:
        current = _RecursiveHash(bytes(salt), current)
    current.update(bytes(key))
    return current.digest()