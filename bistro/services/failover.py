import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from bistro.database import DatabaseHealth
from bistro.errors import PersistenceUnavailable
from bistro.metrics import FALLBACK_ACTIVATIONS

logger = logging.getLogger(__name__)

T = TypeVar("T")

FALLBACK_NOTE = "Using mock data - database not connected"


@dataclass
class Served(Generic[T]):
    value: T
    degraded: bool = False

    @property
    def note(self) -> str | None:
        return FALLBACK_NOTE if self.degraded else None


class Failover:
    """Runs an operation against the database, or the in-memory fallback when it is down.

    The database is skipped outright while ``DatabaseHealth`` reports it
    unavailable. A PersistenceUnavailable raised mid-operation marks it down
    and the same operation is rerun on the fallback. Other errors propagate.
    """

    def __init__(self, health: DatabaseHealth) -> None:
        self.health = health

    async def run(
        self,
        operation: str,
        primary: Callable[[], Awaitable[T]],
        fallback: Callable[[], Awaitable[T]],
    ) -> Served[T]:
        if await self.health.is_available():
            try:
                return Served(await primary())
            except PersistenceUnavailable as exc:
                self.health.mark_down(exc.message)
                logger.warning(
                    "Database error, falling back to mock data",
                    extra={"operation": operation, "error": exc.message},
                )

        FALLBACK_ACTIVATIONS.labels(operation).inc()
        return Served(await fallback(), degraded=True)
