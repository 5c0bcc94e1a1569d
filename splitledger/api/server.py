"""
API server entry point.

Owns the lifecycle of the ledger store: settings are loaded, logging
is configured and components are created here, once per process.
"""

import structlog
import uvicorn
from fastapi import FastAPI

from splitledger.api.routes import create_api
from splitledger.audit import configure_logging
from splitledger.config import get_settings, validate_all_settings
from splitledger.orchestrator import create_app_components


logger = structlog.get_logger(__name__)


def create_server_app() -> FastAPI:
    """Build the API from environment configuration."""
    settings = get_settings()
    app_settings = settings.app
    configure_logging(
        app_settings.log_level,
        app_settings.log_format,
        debug=app_settings.debug_mode,
    )

    status = validate_all_settings()
    if not all(v for k, v in status.items() if not k.endswith("_error")):
        logger.warning("settings_incomplete", **status)

    components = create_app_components(settings)
    return create_api(
        components.service,
        frontend_url=settings.api.frontend_url,
        seed=app_settings.seed_sample_data,
    )


def main() -> None:
    api_settings = get_settings().api
    app = create_server_app()
    logger.info(
        "server_starting",
        host=api_settings.host,
        port=api_settings.port,
        environment=get_settings().app.app_environment,
        cors_origin=api_settings.frontend_url,
    )
    uvicorn.run(app, host=api_settings.host, port=api_settings.port)


if __name__ == "__main__":
    main()
