"""Process entry point: ``python -m cronkeeper``."""

from __future__ import annotations

import asyncio
import logging
import sys

from cronkeeper.app import build_runtime, configure_logging
from cronkeeper.config import ConfigLoadError, load_settings
from cronkeeper.db import ConfigurationError

logger = logging.getLogger("cronkeeper")


def main() -> int:
    try:
        settings = load_settings()
    except (ConfigLoadError, ValueError) as exc:
        configure_logging()
        logger.error("config_invalid error=%s", exc)
        return 1
    configure_logging(settings.log_level)
    try:
        runtime = build_runtime(settings)
        return asyncio.run(runtime.run())
    except ConfigurationError as exc:
        logger.error("startup_failed error=%s", exc)
        return 1
    except Exception:
        logger.exception("startup_failed")
        return 1


if __name__ == "__main__":
    sys.exit(main())
