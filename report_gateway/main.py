"""Standalone server entry point for the report gateway."""

import logging

from .app import create_app
from .errors import ConfigurationError

logger = logging.getLogger("report_gateway.main")


def main() -> None:
    """Create the application and serve it on ``PORT`` (default 8080)."""

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")
    try:
        application = create_app()
    except ConfigurationError as exc:
        logger.critical("Report gateway failed to start: %s", exc.message)
        raise SystemExit(1) from exc

    port = int(application.config.get("APP_PORT", 8080))
    application.run(host="0.0.0.0", port=port, threaded=True)


if __name__ == "__main__":
    main()
