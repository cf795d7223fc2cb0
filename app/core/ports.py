# app/core/ports.py
from __future__ import annotations
from typing import Any, Protocol, Optional


class AsyncKeyValueStore(Protocol):
    """String key → string value storage with JSON helpers.

    Implemented by the root in-memory store and by its tenant view, so
    services never care which namespace they were handed.
    """

    async def get(self, key: str) -> Optional[str]: ...
    async def set(self, key: str, value: str) -> None: ...
    async def delete(self, key: str) -> None: ...
    async def has(self, key: str) -> bool: ...
    async def keys(self) -> list[str]: ...
    async def get_json(self, key: str) -> Optional[Any]: ...
    async def set_json(self, key: str, value: Any) -> None: ...
