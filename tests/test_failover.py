import pytest

from bistro.database import DatabaseHealth
from bistro.errors import OrderNotFound, PersistenceUnavailable
from bistro.services.failover import FALLBACK_NOTE, Failover


def health(available: bool) -> DatabaseHealth:
    state = DatabaseHealth(engine=None, probe_interval=3600)
    if available:
        state.available = True
    else:
        state.mark_down("test")
    return state


async def test_primary_result_is_not_degraded():
    async def primary():
        return "db"

    async def fallback():
        raise AssertionError("fallback should not run")

    served = await Failover(health(True)).run("op", primary, fallback)

    assert served.value == "db"
    assert served.degraded is False
    assert served.note is None


async def test_connectivity_failure_reruns_on_fallback():
    state = health(True)

    async def primary():
        raise PersistenceUnavailable("connection refused")

    async def fallback():
        return "memory"

    served = await Failover(state).run("op", primary, fallback)

    assert served.value == "memory"
    assert served.note == FALLBACK_NOTE
    assert state.available is False


async def test_database_marked_down_is_skipped():
    calls = []

    async def primary():
        calls.append("primary")

    async def fallback():
        return "memory"

    served = await Failover(health(False)).run("op", primary, fallback)

    assert served.degraded is True
    assert calls == []


async def test_domain_errors_propagate():
    state = health(True)

    async def primary():
        raise OrderNotFound("x")

    async def fallback():
        raise AssertionError("fallback should not run")

    with pytest.raises(OrderNotFound):
        await Failover(state).run("op", primary, fallback)
    assert state.available is True
