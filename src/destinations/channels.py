"""DeliveryChannel protocol — interface for all destination transports."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from src.scheduler.shaping import Payload


@runtime_checkable
class DeliveryChannel(Protocol):
    """Protocol that all delivery channels must satisfy."""

    @property
    def name(self) -> str:
        """Unique channel identifier (e.g. 'slack', 'http')."""
        ...

    async def deliver(self, destination: Any, payload: Payload, message: str) -> None:
        """Deliver *payload* to *destination*. Raises DeliveryError on failure."""
        ...
