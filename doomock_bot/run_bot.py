"""Process entrypoint: makes sure every startup or runtime failure is logged before exit."""

import logging
import sys

from utils.logger import get_logger

logger = get_logger(__name__)

EXIT_CONFIG_ERROR = 2
EXIT_FAILURE = 1


def _install_excepthook():
    def _hook(exc_type, exc, tb):
        try:
            logger.critical("unhandled_exception", exc_info=(exc_type, exc, tb))
        finally:
            sys.__excepthook__(exc_type, exc, tb)

    sys.excepthook = _hook


def main():
    _install_excepthook()
    try:
        from doomock_app import main as bot_main  # noqa: WPS433
        from services.feature_registry import FeatureInitError  # noqa: WPS433
    except Exception:
        logger.exception("failed_to_import_doomock_app")
        sys.exit(EXIT_FAILURE)

    try:
        bot_main()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except FeatureInitError as e:
        logger.critical(f"Startup aborted: {e}")
        sys.exit(EXIT_FAILURE)
    except ValueError as e:
        logger.critical(f"Invalid configuration: {e}")
        sys.exit(EXIT_CONFIG_ERROR)
    except Exception:
        logger.exception("bot_runtime_failure")
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
