#!/usr/bin/env python3
"""Main entry point for AuthSentry."""

import uvicorn

from authsentry.common.logging import get_logger
from authsentry.common.config import get_config
from authsentry.scoring.rules import load_rules

logger = get_logger(__name__)


def main():
    """Validate the rule table, then serve the API."""
    config = get_config()
    rules = load_rules(config.rules_file, default_path=config.default_rules_file)
    logger.info(f"AuthSentry starting in {config.environment.value} mode")
    logger.info(f"Rule table version {rules.version}, alert sink {config.alert_sink.value}")

    uvicorn.run(
        "authsentry.api.gateway:app",
        host=config.api_host,
        port=config.api_port,
        log_level=config.log_level.value.lower(),
    )


if __name__ == "__main__":
    main()
