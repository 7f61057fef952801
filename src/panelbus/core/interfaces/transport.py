"""Bus transport abstraction (ABC).

The aggregator core talks to the message bus only through this interface.
The D-Bus backend and the in-memory mock both implement it, so the core
runs unchanged against a fake collaborator in tests.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Sequence


class TransportError(Exception):
    """A remote call failed or the bus is unavailable."""


@dataclass(frozen=True)
class BusSignal:
    """One observed signal.

    ``name`` is the fully-qualified ``interface.member``; variants in
    ``body`` are already unwrapped into plain Python values.
    """

    name: str
    sender: str
    path: str
    body: tuple[Any, ...] = field(default_factory=tuple)


class BusTransport(ABC):
    """Signal delivery and outbound calls over a session message bus."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the underlying connection(s)."""

    @abstractmethod
    async def close(self) -> None:
        """Close the underlying connection(s)."""

    @abstractmethod
    def attach(self, queue: asyncio.Queue[BusSignal]) -> None:
        """Deliver every observed signal, in arrival order, into *queue*."""

    @abstractmethod
    def detach(self, queue: asyncio.Queue[BusSignal]) -> None:
        """Stop delivering signals into *queue*."""

    @abstractmethod
    async def add_match(
        self,
        *,
        interface: str,
        member: str | None = None,
        path: str | None = None,
        arg0namespace: str | None = None,
    ) -> None:
        """Subscribe to signals matching the given rule."""

    @abstractmethod
    async def call(
        self,
        destination: str,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Sequence[Any] = (),
    ) -> list[Any]:
        """Invoke a remote method and return its (unwrapped) reply body.

        Raises:
            TransportError: If the call fails or returns an error reply.
        """

    @abstractmethod
    async def inhibit(self, what: str, who: str, why: str, mode: str) -> int:
        """Take a logind inhibition lock and return its opaque, non-zero handle.

        Raises:
            TransportError: If the session manager refuses the request.
        """

    @abstractmethod
    def release(self, handle: int) -> None:
        """Close an inhibition *handle* previously returned by :meth:`inhibit`.

        Raises:
            TransportError: If the handle could not be closed.
        """
