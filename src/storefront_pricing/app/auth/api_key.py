from __future__ import annotations

import os

from fastapi import Header, HTTPException, status


def keys_from_env(name: str) -> set[str]:
    return set(filter(None, (key.strip() for key in os.getenv(name, "").split(","))))


class ApiKeyAuth:
    """Checks ``X-API-Key`` against ``valid_keys``.

    ``also_accept`` lets admin keys through storefront routes. An empty
    ``valid_keys`` leaves the route open.
    """

    def __init__(self, valid_keys: set[str], *, also_accept: set[str] | None = None) -> None:
        self.valid_keys = valid_keys
        self.also_accept = also_accept or set()

    def __call__(self, x_api_key: str | None = Header(default=None)) -> None:
        if not self.valid_keys:
            return
        if not x_api_key or (x_api_key not in self.valid_keys and x_api_key not in self.also_accept):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
