"""
Tests for store selection and application startup wiring.
"""

import pytest

from registration_api.core.config import Settings
from registration_api.infrastructure.memory_store import MemoryDocumentStore
from registration_api.infrastructure.s3_store import S3DocumentStore
from registration_api.infrastructure.sql_store import SqlDocumentStore
from registration_api.main import create_app
from registration_api.services.strategy_factory import get_store_strategy


def test_memory_backend():
    assert isinstance(get_store_strategy(Settings(STORE_BACKEND="memory")), MemoryDocumentStore)


@pytest.mark.asyncio
async def test_sql_backend(tmp_path):
    settings = Settings(
        STORE_BACKEND="sql",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'store.db'}",
    )
    store = get_store_strategy(settings)
    assert isinstance(store, SqlDocumentStore)
    await store.close()


def test_s3_backend():
    settings = Settings(
        STORE_BACKEND="S3",
        S3_REGISTRATIONS_BUCKET="registrations",
        AWS_ACCESS_KEY_ID="testing",
        AWS_SECRET_ACCESS_KEY="testing",
    )
    store = get_store_strategy(settings)
    assert isinstance(store, S3DocumentStore)
    assert store.bucket == "registrations"


def test_s3_backend_requires_bucket():
    with pytest.raises(ValueError):
        get_store_strategy(Settings(STORE_BACKEND="s3", S3_REGISTRATIONS_BUCKET=None))


def test_unknown_backend():
    with pytest.raises(ValueError):
        get_store_strategy(Settings(STORE_BACKEND="dynamo"))


@pytest.mark.asyncio
async def test_lifespan_builds_container():
    app = create_app(Settings(STORE_BACKEND="memory", REDIS_ENABLED=False, AWS_ACCESS_KEY_ID=None))

    async with app.router.lifespan_context(app):
        container = app.state.container
        assert container.store.name == "memory"
        assert container.settings.STORE_BACKEND == "memory"
