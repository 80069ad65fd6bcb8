"""User log server — per-identity append-only logs over HTTP with ZIP export."""

import logging
import sys

from userlogs.app import create_app
from userlogs.config import load_config


def main():
    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.service_log_level),
        format="%(asctime)s [user-log-server] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    logger.info("Starting user log server")
    logger.info(
        "Config: log_dir=%s, rate_limit=%s (%d req / %ds), compression=%d",
        config.log_dir, config.rate_limit_enabled, config.rate_limit_max_requests,
        config.rate_limit_window_seconds, config.archive_compression_level,
    )

    app = create_app(config)
    logger.info("POST to http://%s:%d/log with user_id and message", config.host, config.port)
    app.run(host=config.host, port=config.port, threaded=True, use_reloader=False)


if __name__ == "__main__":
    main()
