"""
Startup configuration validation module.

This module provides startup-time validation for critical configuration
to catch misconfigurations early (fail-fast) rather than at runtime when
the first request tries to check out a connection.

Usage:
    from shared.startup_validator import validate_startup_config, StartupValidationError

    async def main():
        try:
            await validate_startup_config()
        except StartupValidationError as e:
            logger.critical(f"Startup blocked: {e}")
            sys.exit(1)
"""

import logging

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from shared.config import Settings, get_settings

logger = logging.getLogger(__name__)

ASYNC_DRIVERS = ("asyncpg", "psycopg")
LOCAL_HOSTS = ("localhost", "127.0.0.1", "postgres", None)


class StartupValidationError(Exception):
    """Raised when critical startup validation fails."""

    pass


async def validate_startup_config(settings: Settings | None = None) -> dict[str, bool]:
    """
    Validate all critical configuration at startup.

    Performs tiered validation:
    - TIER 1 (CRITICAL): Block startup if any fail
    - TIER 2 (IMPORTANT): Warn but allow startup

    Args:
        settings: Settings to validate (defaults to get_settings())

    Returns:
        dict of {check_name: passed} for all validations

    Raises:
        StartupValidationError: If any CRITICAL check fails
    """
    settings = settings or get_settings()
    results: dict[str, bool] = {}
    critical_failures: list[str] = []

    # =========================================================================
    # TIER 1: CRITICAL (block startup if any fail)
    # =========================================================================

    # 1. DATABASE_URL parses and targets PostgreSQL through an async driver
    url = None
    try:
        url = make_url(settings.DATABASE_URL)
    except ArgumentError as e:
        critical_failures.append(f"DATABASE_URL is not a valid URL: {e}")
        results["database_url_format"] = False

    if url is not None:
        if url.get_backend_name() != "postgresql":
            critical_failures.append(
                f"DATABASE_URL must target PostgreSQL, got '{url.get_backend_name()}'"
            )
            results["database_url_format"] = False
        elif url.get_driver_name() not in ASYNC_DRIVERS:
            critical_failures.append(
                "DATABASE_URL should use an async driver: postgresql+asyncpg://..."
            )
            results["database_url_format"] = False
        else:
            results["database_url_format"] = True
            logger.info(f"  [OK] Database driver: {url.get_driver_name()}")

    # 2. Pool sizing
    if settings.DB_POOL_SIZE < 1:
        critical_failures.append("DB_POOL_SIZE must be at least 1")
        results["pool_size"] = False
    elif settings.DB_MAX_OVERFLOW < 0:
        critical_failures.append("DB_MAX_OVERFLOW cannot be negative")
        results["pool_size"] = False
    elif settings.DB_POOL_TIMEOUT <= 0:
        critical_failures.append("DB_POOL_TIMEOUT must be greater than 0")
        results["pool_size"] = False
    else:
        results["pool_size"] = True
        logger.info(
            f"  [OK] Pool: size={settings.DB_POOL_SIZE}, "
            f"max_overflow={settings.DB_MAX_OVERFLOW}, timeout={settings.DB_POOL_TIMEOUT}s"
        )

    # =========================================================================
    # TIER 2: IMPORTANT (warn but allow startup)
    # =========================================================================

    # 3. Placeholder password outside local development
    if url is not None:
        if url.password == "changeme" and url.host not in LOCAL_HOSTS:
            logger.warning(
                f"DATABASE_URL uses the placeholder password against remote host {url.host}"
            )
            results["database_password"] = False
        else:
            results["database_password"] = True

    # 4. Default staff credential hash
    if settings.DEFAULT_STAFF_PASSWORD_HASH.endswith(":changeme"):
        logger.warning(
            "DEFAULT_STAFF_PASSWORD_HASH is the placeholder - new staff accounts share a known credential"
        )
        results["staff_password_hash"] = False
    else:
        results["staff_password_hash"] = True

    # =========================================================================
    # Summary and result
    # =========================================================================

    passed = sum(1 for v in results.values() if v)
    total = len(results)
    logger.info(f"Startup validation: {passed}/{total} checks passed")

    if critical_failures:
        logger.critical("=" * 60)
        logger.critical("STARTUP BLOCKED - Critical configuration errors:")
        for i, failure in enumerate(critical_failures, 1):
            logger.critical(f"  {i}. {failure}")
        logger.critical("=" * 60)
        raise StartupValidationError(
            f"Critical startup validation failed ({len(critical_failures)} errors): "
            f"{'; '.join(critical_failures)}"
        )

    return results
