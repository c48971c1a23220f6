# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: astig-gateway

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from astig_gateway import __version__
from astig_gateway.core.relay import Relay
from astig_gateway.settings import Settings
from astig_gateway.utils.logger import configure_logging, logger

RELAY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_app(settings: Optional[Settings] = None, relay: Optional[Relay] = None) -> FastAPI:
    """
    Application factory. Every path is handed to the Relay, which owns routing and error shaping.

    Args:
        settings: Process configuration; read from the environment when omitted.
        relay: Pre-built Relay (tests inject one with mock capabilities).
    """
    settings = settings or Settings()
    configure_logging(level=settings.log_level, serialize=settings.log_json)

    for env_name in settings.missing_configuration():
        logger.warning(f"[astig-gateway] {env_name} not set")

    relay = relay or Relay(settings)

    application = FastAPI(
        title="astig-gateway",
        description="Relay between the astig.systems frontend, the AERIS council and n8n workflows",
        version=__version__,
    )

    origins = settings.cors_origin_list
    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    application.state.settings = settings
    application.state.relay = relay

    @application.api_route("/{path:path}", methods=RELAY_METHODS, include_in_schema=False)
    async def relay_route(path: str, request: Request) -> JSONResponse:
        raw_body = await request.body()
        status_code, body = await request.app.state.relay.handle(request.url.path, request.method, raw_body)
        return JSONResponse(status_code=status_code, content=body)

    logger.info(f"[astig-gateway] Initialized (mode: {settings.council_mode})")
    return application


app = create_app()
