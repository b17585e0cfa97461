"""Neo4j driver and connection management."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from neo4j import AsyncDriver, AsyncGraphDatabase
from neo4j.exceptions import AuthError, ServiceUnavailable

from bot_recall.core.base import DatabaseErrorDetails
from bot_recall.core.config import Settings, settings
from bot_recall.core.errors import StoreUnavailableError
from bot_recall.core.logging import get_logger

logger = get_logger(__name__)


async def connect_neo4j_driver(
    config: Settings | None = None,
    max_connection_pool_size: int = 50,
    max_connection_lifetime: int = 3600,
) -> AsyncDriver:
    """Create a Neo4j driver and verify connectivity.

    Raises:
        StoreUnavailableError: If the server cannot be reached or rejects the credentials
    """
    config = config or settings
    logger.info(
        "Creating Neo4j driver",
        uri=config.neo4j_uri,
        pool_size=max_connection_pool_size,
        connection_lifetime=max_connection_lifetime,
    )

    driver = AsyncGraphDatabase.driver(
        config.neo4j_uri,
        auth=(config.neo4j_user, config.neo4j_password),
        max_connection_pool_size=max_connection_pool_size,
        max_connection_lifetime=max_connection_lifetime,
    )

    try:
        await driver.verify_connectivity()
    except (ServiceUnavailable, AuthError, OSError) as e:
        await driver.close()
        raise StoreUnavailableError(
            message=f"Neo4j unreachable at {config.neo4j_uri}: {e!s}",
            details=DatabaseErrorDetails(
                source="neo4j_driver",
                operation="verify_connectivity",
                service_name="Neo4j",
                endpoint=config.neo4j_uri,
            ),
        ) from e

    logger.info("Neo4j connection established")
    return driver


@asynccontextmanager
async def neo4j_driver(config: Settings | None = None) -> AsyncIterator[AsyncDriver]:
    """Driver scoped to an ``async with`` block; closed on exit."""
    driver = await connect_neo4j_driver(config)
    try:
        yield driver
    finally:
        await driver.close()
        logger.info("Neo4j driver closed")
