"""
Matrix Moderation Warden
========================

Subscribes to policy lists, applies their ban and kick rules to the protected
rooms, and runs real-time protections against flooding and media spam.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. MODWARDEN_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("MODWARDEN_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
from dotenv import load_dotenv

from modwarden.bot.warden import Warden
from modwarden.configuration.app_configuration import app_config
from modwarden.database import Database
from modwarden.matrix.client import MatrixClient
from modwarden.util.logger import get_logger, handle_exception


logger = get_logger("main")


def load_environment() -> str:
    """Load environment variables and return the Matrix access token.

    Raises
    ------
    SystemExit
        If ``MATRIX_ACCESS_TOKEN`` is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("MATRIX_ACCESS_TOKEN")
    if not token:
        logger.critical("'MATRIX_ACCESS_TOKEN' environment variable not set. Warden cannot start.")
        sys.exit(1)
    return token


async def async_main() -> int:
    """Bootstrap the database, client and warden, returning an exit code."""
    token = load_environment()

    if not app_config.homeserver_url or not app_config.management_room:
        logger.critical("'homeserver_url' and 'management_room' must be set in %s", app_config.config_path)
        return 1

    database = Database(app_config.database_path)
    if not await database.initialize():
        logger.critical("Failed to initialize database at %s", app_config.database_path)
        return 1

    client = MatrixClient(app_config.homeserver_url, token, app_config.management_room)
    warden = Warden(app_config, client, action_log=database)
    exit_code = 0

    try:
        user_id = await client.whoami()
        logger.info("Logged in as %s on %s", user_id, app_config.homeserver_url)
        if app_config.noop:
            logger.warning("Running in no-op mode: no bans, kicks or redactions will be issued.")
        await warden.start()
    except asyncio.CancelledError:
        logger.info("Warden cancelled; shutting down")
    except Exception as exc:
        logger.critical("Warden runtime error: %s", exc)
        exit_code = 1
    finally:
        await warden.stop()
        await client.close()
        await database.shutdown()
        logger.info("Shutdown complete.")

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    logger.info("Starting Matrix Moderation Warden…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the warden: %s", exc)
        return 1


if __name__ == "__main__":
    sys.excepthook = handle_exception
    sys.exit(main())
