# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: astig-gateway

from typing import Any, Optional


class GatewayError(Exception):
    """
    Base exception for every failure the gateway reports to its caller.
    Carries the HTTP status and a stable machine-readable code.
    """

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, code: Optional[str] = None, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.extra = extra

    def to_envelope(self) -> dict[str, Any]:
        envelope: dict[str, Any] = {"ok": False, "error": self.message, "code": self.code}
        envelope.update(self.extra)
        return envelope


class ClientError(GatewayError):
    """Malformed or missing input from the caller."""

    status_code = 400
    code = "invalid_body"


class NotFoundError(GatewayError):
    status_code = 404
    code = "not_found"


class MethodNotAllowedError(GatewayError):
    status_code = 405
    code = "method_not_allowed"


class ConfigurationError(GatewayError):
    """A destination URL or credential required by the request is not configured."""

    status_code = 503
    code = "missing_config"

    def __init__(self, config_key: str) -> None:
        super().__init__(f"{config_key} not configured on astig-gateway.", config_key=config_key)
        self.config_key = config_key


class UpstreamError(GatewayError):
    """An external capability failed or answered with a non-success status."""

    status_code = 502
    code = "upstream_error"


class UpstreamTimeoutError(UpstreamError):
    status_code = 504
    code = "upstream_timeout"
