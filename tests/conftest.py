from datetime import datetime, timedelta, timezone
from decimal import Decimal
from functools import partial

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from bistro.config import Settings
from bistro.main import create_app
from bistro.models.menu_item import MenuCategory, MenuItem

JWT_SECRET = "test-secret"


def _settings(database_url: str, **overrides) -> Settings:
    return Settings(
        database_url=database_url,
        kafka_enabled=False,
        tracing_enabled=False,
        jwt_secret=JWT_SECRET,
        db_probe_interval=3600,
        **overrides,
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return _settings(f"sqlite+aiosqlite:///{tmp_path / 'bistro.db'}")


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as client:
        yield client


@pytest.fixture
def degraded_client(tmp_path):
    # The parent directory does not exist, so every connection attempt fails.
    settings = _settings(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'bistro.db'}")
    with TestClient(create_app(settings)) as client:
        yield client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    claims = {
        "sub": "staff-1",
        "role": "staff",
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    return {"Authorization": f"Bearer {jwt.encode(claims, JWT_SECRET, algorithm='HS256')}"}


async def _insert_menu_item(app, fields: dict) -> str:
    async with app.state.session_factory() as db:
        item = MenuItem(**fields)
        db.add(item)
        await db.commit()
        return str(item.id)


def add_menu_item(client: TestClient, **fields) -> str:
    fields.setdefault("category", MenuCategory.MAIN_COURSE)
    fields.setdefault("price", Decimal("100"))
    fields.setdefault("is_available", True)
    fields.setdefault("preparation_time", 15)
    return client.portal.call(partial(_insert_menu_item, client.app, fields))


def order_payload(menu_item_id: str, quantity: int = 2, **overrides) -> dict:
    payload = {
        "customer": {"name": "A", "phone": "9876543210"},
        "items": [{"menuItem": menu_item_id, "quantity": quantity, "unitPrice": 100}],
        "orderType": "takeout",
        "paymentMethod": "cash",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def permissive_client(tmp_path):
    settings = _settings(f"sqlite+aiosqlite:///{tmp_path / 'bistro.db'}", strict_status_transitions=False)
    with TestClient(create_app(settings)) as client:
        yield client
