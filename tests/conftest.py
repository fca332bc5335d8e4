"""
Pytest fixtures for identity-core tests.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from identity_core.bootstrap import build_identity_service
from identity_core.config import Settings
from identity_core.database import close_db, create_engine, init_db
from identity_core.kernel.identity import CredentialStore, IdentityService, JWTManager, KeyManager

# Smaller than production keys; generation dominates test time otherwise
TEST_KEY_SIZE = 2048


def make_settings(key_dir, **overrides) -> Settings:
    """Settings isolated from the environment's .env file."""
    values = dict(
        key_size=TEST_KEY_SIZE,
        public_access_key_path=key_dir / "access.key.pub",
        private_access_key_path=key_dir / "access.key",
        public_refresh_key_path=key_dir / "refresh.key.pub",
        private_refresh_key_path=key_dir / "refresh.key",
        init_admin=False,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(scope="session")
def key_settings(tmp_path_factory) -> Settings:
    """Settings whose key pairs are generated once for the whole session."""
    settings = make_settings(tmp_path_factory.mktemp("keys"))
    KeyManager(settings).provision()
    return settings


@pytest.fixture
def settings(key_settings: Settings, tmp_path) -> Settings:
    """Per-test settings: shared keys, private SQLite file."""
    return key_settings.model_copy(
        update={"database_url": f"sqlite+aiosqlite:///{tmp_path / 'identity.db'}"}
    )


@pytest.fixture
def key_manager(settings: Settings) -> KeyManager:
    return KeyManager(settings)


@pytest.fixture
def jwt_manager(key_manager: KeyManager, settings: Settings) -> JWTManager:
    return JWTManager(key_manager, settings)


@pytest_asyncio.fixture
async def db_engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Engine with the identity schema created."""
    engine = create_engine(settings)
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest_asyncio.fixture
async def identity_service(settings: Settings, db_engine: AsyncEngine) -> IdentityService:
    service = build_identity_service(settings, db_engine)
    await service.startup()
    return service


@pytest.fixture
def credential_store(identity_service: IdentityService) -> CredentialStore:
    return identity_service.store


@pytest_asyncio.fixture
async def alice(identity_service: IdentityService):
    """A registered principal with a known password."""
    return await identity_service.register({
        "username": "alice",
        "email": "alice@example.com",
        "password": "secret123",
        "given_name": "Alice",
    })
