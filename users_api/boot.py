"""
Startup validation.

Runs in two places:
1. ``main.lifespan`` -> ``BootMode.CRITICAL``: config + database, exits on failure
2. CI -> ``BootMode.DRY_RUN``: config only (``python -m users_api.boot --mode dry-run``)
"""

import asyncio
import os
import sys
import time
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import create_async_engine

from users_api.config import settings
from users_api.logger import get_logger

logger = get_logger(__name__)

REQUIRED_TABLES = ("users",)

# Printed verbatim by print_config
DISPLAY_FIELDS = (
    "environment",
    "debug",
    "host",
    "port",
    "jwt_algorithm",
    "access_token_expire_days",
    "bcrypt_rounds",
    "database_auto_create",
    "otel_exporter_otlp_endpoint",
    "otel_service_name",
)
# Printed only as set / not set
SECRET_FIELDS = ("database_url", "secret_key")


class BootMode(str, Enum):
    CRITICAL = "critical"
    DRY_RUN = "dry-run"


@dataclass
class ServiceStatus:
    service: str
    status: str  # 'ok' or 'error'
    message: str
    duration_ms: float = 0.0


def _fail(mode: BootMode, reason: str) -> bool:
    if mode == BootMode.CRITICAL:
        logger.critical("Boot validation failed, refusing to start", reason=reason)
        sys.exit(1)
    return False


class Bootloader:
    """Validates configuration and database reachability before serving."""

    @staticmethod
    async def validate(mode: BootMode = BootMode.CRITICAL) -> bool:
        """Return True when every check for ``mode`` passes.

        In CRITICAL mode a failed check terminates the process with status 1.
        """
        logger.info("Boot validation started", mode=mode.value)

        if not Bootloader._check_static_config():
            return _fail(mode, "configuration")

        if mode == BootMode.DRY_RUN:
            logger.info("Boot validation passed", mode=mode.value)
            return True

        result = await Bootloader._check_database()
        if result.status != "ok":
            logger.error(
                "Service check failed",
                service=result.service,
                error=result.message,
                duration_ms=result.duration_ms,
            )
            return _fail(mode, result.service)

        logger.info("Boot validation passed", mode=mode.value, db_ms=result.duration_ms)
        return True

    @staticmethod
    def print_config() -> None:
        """Dump non-secret settings to stdout when DEBUG is set."""
        if os.getenv("DEBUG", "").lower() not in ("true", "1", "yes"):
            return

        rule = "=" * 60
        print(f"\n{rule}\nConfig loaded (DEBUG mode)\n{rule}")
        for field in DISPLAY_FIELDS:
            value = getattr(settings, field, None)
            if value is not None:
                print(f"  {field}: {value}")
        print("")
        for field in SECRET_FIELDS:
            print(f"  {field}: {'set' if getattr(settings, field, None) else 'not set'}")
        print(f"{rule}\n")

    @staticmethod
    def _check_static_config() -> bool:
        """Reject settings the service cannot run with in this environment."""
        problems = []
        if not settings.database_url:
            problems.append("DATABASE_URL is empty")
        if not settings.secret_key:
            problems.append("SECRET_KEY is empty")
        elif settings.uses_dev_secret:
            if settings.environment == "production":
                problems.append("SECRET_KEY uses the development default")
            else:
                logger.warning("Using the development SECRET_KEY", environment=settings.environment)

        for problem in problems:
            logger.error("Configuration check failed", error=problem)
        return not problems

    @staticmethod
    async def _check_database() -> ServiceStatus:
        """Run ``SELECT 1``; unless tables are auto-created, also require the migrated schema."""
        start = time.perf_counter()
        engine = None
        try:
            engine = create_async_engine(settings.database_url, echo=False)
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                if not settings.database_auto_create:
                    missing = await conn.run_sync(
                        lambda sync_conn: [t for t in REQUIRED_TABLES if not inspect(sync_conn).has_table(t)]
                    )
                    if missing:
                        return ServiceStatus(
                            "database",
                            "error",
                            f"Missing tables {missing}; run 'alembic upgrade head'",
                            (time.perf_counter() - start) * 1000,
                        )
            return ServiceStatus("database", "ok", "Connection successful", (time.perf_counter() - start) * 1000)
        except Exception as e:
            return ServiceStatus("database", "error", str(e), (time.perf_counter() - start) * 1000)
        finally:
            if engine is not None:
                await engine.dispose()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Validate users-api configuration")
    parser.add_argument("--mode", default=BootMode.CRITICAL.value, choices=[m.value for m in BootMode])
    args = parser.parse_args()

    print(f"Bootloader: Running validation cycle (mode={args.mode})")
    try:
        # DRY_RUN returns False on failure; CRITICAL exits on its own
        success = asyncio.run(Bootloader.validate(BootMode(args.mode)))
    except KeyboardInterrupt:
        print("\nAborted.")
        sys.exit(130)

    print("Validation check passed." if success else "Validation check failed.")
    sys.exit(0 if success else 1)
