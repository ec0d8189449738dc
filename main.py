"""Telemetry ingestion server. Accepts client error reports over HTTP."""

import logging
import os
import sys

from telemetry.app import create_app
from telemetry.config import load_config


def main():
    config = load_config(os.environ.get("CONFIG_PATH", "config.yaml"))
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [telemetry] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)
    logger.info(
        "Config: log_dir=%s, max_size=%d bytes, rate_limit=%d/%ds (enabled=%s)",
        config.log_dir, config.max_file_size_bytes, config.rate_limit_max_requests,
        config.rate_limit_window_seconds, config.rate_limit_enabled,
    )

    app = create_app(config)
    app.run(host=config.host, port=config.port, threaded=True)


if __name__ == "__main__":
    main()
