# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: astig-gateway

import json
from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import ValidationError

from astig_gateway.core.council import BaseConsultant, CouncilOrchestrator, SingleAdvisor
from astig_gateway.core.forwarder import PATH_TOOLS, WorkflowForwarder, resolve_tool
from astig_gateway.core.llm_client import BaseLLMClient, OpenAILLMClient
from astig_gateway.core.normalizer import extract_reply
from astig_gateway.core.seats import load_seats
from astig_gateway.core.types import RelayRequest, Seat, ToolName
from astig_gateway.exceptions import ClientError, GatewayError, MethodNotAllowedError, NotFoundError, UpstreamError
from astig_gateway.settings import Settings
from astig_gateway.utils.logger import logger

HEALTH_PATHS = frozenset({"/health", "/healthz"})
COUNCIL_PATH = "/council"
RELAY_PATH = "/relay"
TOOLS_PREFIX = "/tools/"

RawBody = Union[bytes, str, None]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _normalize_path(path: str) -> str:
    path = "/" + path.strip().lstrip("/")
    return path.rstrip("/") or "/"


class Relay:
    """
    Transport-independent request handler.
    Validates the inbound envelope, then either consults the council or forwards
    the raw body to a workflow webhook, and normalizes the reply.
    """

    def __init__(
        self,
        settings: Settings,
        llm_client: Optional[BaseLLMClient] = None,
        consultant: Optional[BaseConsultant] = None,
        forwarder: Optional[WorkflowForwarder] = None,
        seats: Optional[list[Seat]] = None,
    ) -> None:
        """
        Args:
            settings: Immutable process configuration.
            llm_client: Chat-completion client; built from settings on first use when omitted.
            consultant: Ready-made consultant; overrides llm_client and council_mode.
            forwarder: Webhook forwarder; built from settings when omitted.
            seats: Council seats; loaded from settings.seats_file when omitted.
        """
        self.settings = settings
        self.llm_client = llm_client
        self.forwarder = forwarder or WorkflowForwarder(settings)
        self._consultant = consultant
        if seats is None and consultant is None and settings.council_mode == "council":
            seats = load_seats(settings.seats_file)
        self.seats = seats or []

    @property
    def consultant(self) -> BaseConsultant:
        """
        The consultant for /council, created on first use.

        Raises:
            ConfigurationError: No LLM client was given and OPENAI_API_KEY is unset.
        """
        if self._consultant is None:
            client = self.llm_client or OpenAILLMClient(self.settings)
            if self.settings.council_mode == "single":
                self._consultant = SingleAdvisor(
                    client,
                    temperature=self.settings.openai_temperature,
                    max_tokens=self.settings.openai_max_tokens,
                )
            else:
                self._consultant = CouncilOrchestrator(
                    client,
                    self.seats,
                    temperature=self.settings.openai_temperature,
                    max_tokens=self.settings.openai_max_tokens,
                )
        return self._consultant

    async def handle(self, path: str, method: str, raw_body: RawBody = None) -> tuple[int, dict[str, Any]]:
        """
        Handles one inbound request.

        Never raises: every failure becomes a JSON envelope with a real status code.

        Returns:
            (status_code, json_body)
        """
        path = _normalize_path(path)
        method = method.upper()
        logger.info(f"Inbound {method} {path} at {_utc_now()}")

        try:
            return await self._dispatch(path, method, raw_body)
        except GatewayError as e:
            logger.warning(f"{method} {path} -> {e.status_code} {e.code}: {e.message}")
            return e.status_code, e.to_envelope()
        except Exception:
            logger.exception(f"Internal error in {path}")
            return 500, {"ok": False, "error": f"Internal error in {path}", "code": "internal_error"}

    async def _dispatch(self, path: str, method: str, raw_body: RawBody) -> tuple[int, dict[str, Any]]:
        if path in HEALTH_PATHS:
            if method not in ("GET", "HEAD"):
                raise MethodNotAllowedError(f"{method} not allowed on {path}", path=path)
            return 200, {"ok": True, "service": self.settings.service_name, "time": _utc_now()}

        tool_name: Optional[str] = None
        if path == COUNCIL_PATH:
            route = "council"
        elif path == RELAY_PATH:
            route = "relay"
        elif path in PATH_TOOLS:
            route, tool_name = "tool", PATH_TOOLS[path].value
        elif path.startswith(TOOLS_PREFIX) and "/" not in path[len(TOOLS_PREFIX) :]:
            route, tool_name = "tool", path[len(TOOLS_PREFIX) :]
        else:
            raise NotFoundError("Not found", path=path)

        if method != "POST":
            raise MethodNotAllowedError(f"{method} not allowed on {path}", path=path)

        body_bytes = raw_body.encode("utf-8") if isinstance(raw_body, str) else (raw_body or b"")
        request = self._parse_request(body_bytes)

        if route == "council":
            return await self._consult(request)

        tool = resolve_tool(tool_name if route == "tool" else request.tool)
        return await self._forward(tool, body_bytes)

    @staticmethod
    def _parse_request(body_bytes: bytes) -> RelayRequest:
        """
        Raises:
            ClientError: Body is not a JSON object with a non-empty `message` string.
        """
        try:
            data = json.loads(body_bytes) if body_bytes.strip() else {}
        except (ValueError, RecursionError):
            raise ClientError("Body must be valid JSON.", code="invalid_json") from None

        if not isinstance(data, dict):
            raise ClientError("Body must be a JSON object.", code="invalid_body")

        try:
            return RelayRequest.model_validate(data)
        except ValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            if "message" in fields:
                raise ClientError(
                    "Body must be JSON with a non-empty `message` string.", code="invalid_message"
                ) from None
            raise ClientError(f"Invalid fields in body: {fields}", code="invalid_body") from None

    async def _consult(self, request: RelayRequest) -> tuple[int, dict[str, Any]]:
        result = await self.consultant.consult(request.message)
        return 200, {"ok": True, "reply": result.reply_text, "trace": result.trace.model_dump()}

    async def _forward(self, tool: ToolName, body_bytes: bytes) -> tuple[int, dict[str, Any]]:
        result = await self.forwarder.forward(tool, body_bytes)
        if not result.ok:
            raise UpstreamError(
                "Upstream workflow error",
                tool=tool.value,
                status=result.status_code,
                raw=result.raw_text,
            )
        return 200, {
            "ok": True,
            "tool": tool.value,
            "reply": extract_reply(result.payload),
            "data": result.payload,
        }
