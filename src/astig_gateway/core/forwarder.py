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
from typing import Any, Optional

import httpx

from astig_gateway.core.types import ForwardResult, ToolName
from astig_gateway.exceptions import ClientError, ConfigurationError, UpstreamError, UpstreamTimeoutError
from astig_gateway.settings import DESTINATION_ENV_NAMES, Settings
from astig_gateway.utils.logger import logger

# Settings field holding each tool's destination URL.
TOOL_URL_FIELDS: dict[ToolName, str] = {
    ToolName.BIG_INGEST: "n8n_big_ingest_url",
    ToolName.IMAGE_INGEST: "n8n_image_ingest_url",
    ToolName.RAG_QUERY: "n8n_rag_query_url",
    ToolName.JOBS_BUILDER: "n8n_jobs_builder_url",
}

# Fixed inbound paths that select a tool without a `tool` field.
PATH_TOOLS: dict[str, ToolName] = {
    "/ingest/big": ToolName.BIG_INGEST,
    "/ingest/image": ToolName.IMAGE_INGEST,
    "/rag/query": ToolName.RAG_QUERY,
    "/jobs/build": ToolName.JOBS_BUILDER,
}


def resolve_tool(name: Optional[str]) -> ToolName:
    """
    Maps a tool name from a path segment or request body to a ToolName.

    Raises:
        ClientError: The name is missing or not a known tool.
    """
    known = [t.value for t in ToolName]
    if not name:
        raise ClientError(f"A `tool` field is required. Known tools: {known}.", code="unknown_tool")
    try:
        return ToolName(name)
    except ValueError:
        raise ClientError(f"Unknown tool '{name}'. Known tools: {known}.", code="unknown_tool") from None


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def _parse_body(raw_text: str) -> Any:
    """
    JSON if it parses, otherwise the raw text unchanged.

    NaN and Infinity are refused so the payload stays renderable as strict JSON.
    """
    if not raw_text.strip():
        return None
    try:
        return json.loads(raw_text, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return raw_text


class WorkflowForwarder:
    """
    Forwards raw request bodies to the configured workflow webhooks.
    One POST per call, no retries.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        """
        Args:
            settings: Source of destination URLs, shared secret and timeout.
            transport: Optional httpx transport, used instead of the network when given.
        """
        self.settings = settings
        self.transport = transport

    def destination(self, tool: ToolName) -> str:
        """
        Raises:
            ConfigurationError: No URL is configured for the tool.
        """
        field_name = TOOL_URL_FIELDS[tool]
        url = (getattr(self.settings, field_name) or "").strip()
        if not url:
            raise ConfigurationError(DESTINATION_ENV_NAMES[field_name])
        return url

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.webhook_secret:
            headers[self.settings.webhook_secret_header] = self.settings.webhook_secret
        return headers

    async def forward(self, tool: ToolName, raw_body: bytes) -> ForwardResult:
        """
        POSTs ``raw_body`` unchanged to the tool's webhook.

        Success is decided by the upstream HTTP status alone.

        Raises:
            ConfigurationError: Destination not configured; no request is made.
            UpstreamTimeoutError: The webhook did not answer within the timeout.
            UpstreamError: The webhook could not be reached.
        """
        url = self.destination(tool)

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.request_timeout_seconds, transport=self.transport
            ) as client:
                response = await client.post(url, content=raw_body, headers=self._headers())
        except httpx.TimeoutException as e:
            logger.error(f"Forward {tool.value}: timed out after {self.settings.request_timeout_seconds}s")
            raise UpstreamTimeoutError(f"Workflow '{tool.value}' timed out.", tool=tool.value) from e
        except httpx.HTTPError as e:
            logger.error(f"Forward {tool.value}: connection failed: {e}")
            raise UpstreamError(
                f"Workflow '{tool.value}' is unreachable.", code="upstream_unreachable", tool=tool.value
            ) from e

        raw_text = response.text
        logger.info(f"Forward {tool.value}: upstream status {response.status_code}")

        return ForwardResult(
            tool=tool,
            status_code=response.status_code,
            ok=response.is_success,
            payload=_parse_body(raw_text),
            raw_text=raw_text,
        )
