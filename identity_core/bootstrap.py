"""
Startup wiring for identity-core.

Builds the settings-driven object graph once and runs the awaited startup
sequence: logging, store schema, signing keys, administrator seed.

Usage:
    async with identity_lifespan() as identity:
        result = await identity.login(username="alice", password="secret123")
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncEngine

from identity_core.config import Settings, get_settings
from identity_core.database import close_db, create_engine, create_session_maker, init_db
from identity_core.kernel.identity import CredentialStore, IdentityService, JWTManager, KeyManager
from identity_core.kernel.models import RefreshToken, User
from identity_core.kernel.store import SqlAlchemyCollection
from identity_core.logging_config import configure_logging, get_logger

logger = get_logger(__name__)


def build_identity_service(settings: Settings, engine: AsyncEngine) -> IdentityService:
    """Wire collections, keys and tokens into an IdentityService."""
    session_maker = create_session_maker(engine)
    store = CredentialStore(
        users=SqlAlchemyCollection(session_maker, User, key_field="user_id"),
        refresh_tokens=SqlAlchemyCollection(session_maker, RefreshToken, key_field="token"),
    )
    jwt_manager = JWTManager(KeyManager(settings), settings)
    return IdentityService(store, jwt_manager, settings)


async def create_identity_service(
    settings: Optional[Settings] = None,
) -> Tuple[IdentityService, AsyncEngine]:
    """
    Build and start an IdentityService.

    Returns the service and its engine; the caller disposes the engine
    with close_db() on shutdown.
    """
    settings = settings or get_settings()
    engine = create_engine(settings)
    try:
        await init_db(engine)
        logger.info("Store schema ready")

        service = build_identity_service(settings, engine)
        await service.startup()
    except BaseException:
        await close_db(engine)
        raise

    logger.info("%s v%s ready", settings.project_name, settings.version)
    return service, engine


@asynccontextmanager
async def identity_lifespan(
    settings: Optional[Settings] = None,
    *,
    setup_logging: bool = True,
) -> AsyncIterator[IdentityService]:
    """
    Run the identity core for the duration of the block.

    Runs startup and shutdown tasks.
    """
    settings = settings or get_settings()
    if setup_logging:
        configure_logging(
            log_level=settings.log_level,
            environment=settings.environment,
            debug=settings.debug,
        )

    service, engine = await create_identity_service(settings)
    try:
        yield service
    finally:
        logger.info("Shutting down...")
        await close_db(engine)
        logger.info("Database connections closed")
