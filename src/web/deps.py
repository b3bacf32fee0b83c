"""Dependency injection for FastAPI routes."""

import structlog
from fastapi import Request

from cli.config import load_config_model
from cli.logging_config import setup_logging
from intents import Steward, build_steward

logger = structlog.get_logger()


def load_steward() -> Steward:
    """Build the steward from the shared config file, logging as JSON."""
    config = load_config_model()
    setup_logging(json_mode=True, level=config.logging.level, log_file=config.paths.log_file)
    return build_steward(config)


def get_steward(request: Request) -> Steward:
    return request.app.state.steward
