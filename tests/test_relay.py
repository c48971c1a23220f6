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
import pytest

from astig_gateway.core.council import SingleAdvisor
from astig_gateway.core.forwarder import WorkflowForwarder
from astig_gateway.core.llm_client import LLMRequest, MockLLMClient
from astig_gateway.core.normalizer import WORKFLOW_REPLY_FALLBACK
from astig_gateway.core.relay import Relay
from astig_gateway.core.types import Seat
from astig_gateway.settings import Settings
from astig_gateway.utils.logger import logger

SEATS = [
    Seat(seat_id=name, title=name.title(), system_prompt=f"You are the {name}.")
    for name in ("architect", "operator", "skeptic", "mentor")
]


class Upstream:
    """Records every webhook call and answers with a fixed response."""

    def __init__(self, response: Optional[httpx.Response] = None) -> None:
        self.response = response or httpx.Response(200, json={"reply": "done"})
        self.calls: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        return self.response


def _echo(request: LLMRequest) -> str:
    return f"{request.system_prompt}: ack"


def _relay(
    upstream: Optional[Upstream] = None,
    llm_client: Optional[MockLLMClient] = None,
    **overrides: Any,
) -> Relay:
    values: dict[str, Any] = {
        "n8n_rag_query_url": "http://n8n.test/rag",
        "n8n_big_ingest_url": "http://n8n.test/big",
        "n8n_image_ingest_url": "http://n8n.test/image",
    }
    values.update(overrides)
    settings = Settings(_env_file=None, **values)
    transport = httpx.MockTransport(upstream or Upstream())
    return Relay(
        settings,
        llm_client=llm_client or MockLLMClient(responder=_echo),
        forwarder=WorkflowForwarder(settings, transport=transport),
        seats=SEATS,
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/health", "/healthz", "/healthz/"])
async def test_health(path: str) -> None:
    status, body = await _relay(service_name="astig_gateway").handle(path, "GET", b"not json")

    assert status == 200
    assert body["ok"] is True
    assert body["service"] == "astig_gateway"
    assert body["time"].endswith("Z")


@pytest.mark.asyncio
async def test_health_wrong_method() -> None:
    status, body = await _relay().handle("/health", "POST", b"{}")

    assert status == 405
    assert body["code"] == "method_not_allowed"


@pytest.mark.asyncio
async def test_unknown_path() -> None:
    status, body = await _relay().handle("/nowhere", "POST", b"{}")

    assert status == 404
    assert body == {"ok": False, "error": "Not found", "code": "not_found", "path": "/nowhere"}


@pytest.mark.asyncio
async def test_council_wrong_method() -> None:
    status, body = await _relay().handle("/council", "GET", None)

    assert status == 405


@pytest.mark.asyncio
async def test_invalid_json() -> None:
    llm = MockLLMClient()
    status, body = await _relay(llm_client=llm).handle("/council", "POST", b"{not json")

    assert status == 400
    assert body["ok"] is False
    assert body["code"] == "invalid_json"
    assert llm.requests == []


@pytest.mark.asyncio
async def test_non_object_body() -> None:
    status, body = await _relay().handle("/council", "POST", b'["message"]')

    assert status == 400
    assert body["code"] == "invalid_body"


@pytest.mark.asyncio
async def test_deeply_nested_body_is_invalid_json() -> None:
    llm = MockLLMClient()
    body = b"[" * 100000 + b"]" * 100000

    status, response = await _relay(llm_client=llm).handle("/council", "POST", body)

    assert status == 400
    assert response["code"] == "invalid_json"
    assert llm.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/council", "/relay", "/rag/query", "/tools/big_ingest"])
@pytest.mark.parametrize(
    "payload",
    [{}, {"message": ""}, {"message": "   \n"}, {"message": 42}, {"message": None}, {"msg": "hi"}],
)
async def test_invalid_message_makes_no_outbound_calls(path: str, payload: dict[str, Any]) -> None:
    upstream = Upstream()
    llm = MockLLMClient()
    relay = _relay(upstream=upstream, llm_client=llm)

    status, body = await relay.handle(path, "POST", json.dumps(payload).encode())

    assert status == 400
    assert body["code"] == "invalid_message"
    assert upstream.calls == []
    assert llm.requests == []


@pytest.mark.asyncio
async def test_empty_body_is_invalid_message() -> None:
    status, body = await _relay().handle("/council", "POST", b"")

    assert status == 400
    assert body["code"] == "invalid_message"


@pytest.mark.asyncio
async def test_invalid_optional_field() -> None:
    status, body = await _relay().handle("/council", "POST", b'{"message": "hi", "meta": "oops"}')

    assert status == 400
    assert body["code"] == "invalid_body"


@pytest.mark.asyncio
async def test_council_consult() -> None:
    llm = MockLLMClient(responder=_echo)
    relay = _relay(llm_client=llm)

    status, body = await relay.handle("/council", "POST", b'{"message": "Should I raise prices?", "actor": "u1"}')

    assert status == 200
    assert body["ok"] is True
    seats = body["trace"]["seats"]
    assert [s["seat_id"] for s in seats] == ["architect", "operator", "skeptic", "mentor"]
    assert seats[0]["answer_text"] == "You are the architect.: ack"
    assert body["trace"]["debate"].endswith(": ack")
    assert body["reply"] == llm.requests[-1].system_prompt + ": ack"
    assert len(llm.requests) == 6


@pytest.mark.asyncio
async def test_council_accepts_str_body() -> None:
    status, body = await _relay().handle("council", "post", '{"message": "hi"}')

    assert status == 200
    assert body["ok"] is True


@pytest.mark.asyncio
async def test_council_single_mode() -> None:
    llm = MockLLMClient(return_content="Single answer.")
    relay = _relay(llm_client=llm, council_mode="single")

    status, body = await relay.handle("/council", "POST", b'{"message": "hi"}')

    assert status == 200
    assert body["reply"] == "Single answer."
    assert body["trace"] == {"seats": [], "debate": ""}
    assert len(llm.requests) == 1


@pytest.mark.asyncio
async def test_council_without_api_key() -> None:
    settings = Settings(_env_file=None, openai_api_key=None)
    relay = Relay(settings, seats=SEATS)

    status, body = await relay.handle("/council", "POST", b'{"message": "hi"}')

    assert status == 503
    assert body["ok"] is False
    assert body["code"] == "missing_config"
    assert body["config_key"] == "OPENAI_API_KEY"
    assert "OPENAI_API_KEY" in body["error"]


@pytest.mark.asyncio
async def test_council_upstream_failure() -> None:
    llm = MockLLMClient(failure_exception=RuntimeError("provider down"))

    status, body = await _relay(llm_client=llm).handle("/council", "POST", b'{"message": "hi"}')

    assert status == 502
    assert body["ok"] is False
    assert body["code"] == "upstream_error"
    assert "provider down" not in json.dumps(body)


@pytest.mark.asyncio
async def test_injected_consultant() -> None:
    settings = Settings(_env_file=None)
    relay = Relay(settings, consultant=SingleAdvisor(MockLLMClient(return_content="injected")))

    status, body = await relay.handle("/council", "POST", b'{"message": "hi"}')

    assert status == 200
    assert body["reply"] == "injected"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path, payload, expected_url",
    [
        ("/rag/query", {"message": "find invoices"}, "http://n8n.test/rag"),
        ("/ingest/big", {"message": "big doc"}, "http://n8n.test/big"),
        ("/tools/image_ingest", {"message": "photo"}, "http://n8n.test/image"),
        ("/relay", {"message": "find", "tool": "rag_query"}, "http://n8n.test/rag"),
        ("/tools/rag_query", {"message": "path wins", "tool": "big_ingest"}, "http://n8n.test/rag"),
    ],
)
async def test_forward_routes(path: str, payload: dict[str, Any], expected_url: str) -> None:
    upstream = Upstream()
    raw = json.dumps(payload).encode()

    status, body = await _relay(upstream=upstream).handle(path, "POST", raw)

    assert status == 200
    assert body["ok"] is True
    assert body["reply"] == "done"
    assert body["data"] == {"reply": "done"}
    assert len(upstream.calls) == 1
    assert str(upstream.calls[0].url) == expected_url
    assert upstream.calls[0].content == raw


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "upstream_body, expected",
    [
        ({"reply": "r", "message": "m", "content": "c"}, "r"),
        ({"message": "m", "content": "c"}, "m"),
        ({"content": "c"}, "c"),
        ({"status": "queued"}, WORKFLOW_REPLY_FALLBACK),
    ],
)
async def test_forward_reply_normalization(upstream_body: dict[str, Any], expected: str) -> None:
    upstream = Upstream(httpx.Response(200, json=upstream_body))

    status, body = await _relay(upstream=upstream).handle("/rag/query", "POST", b'{"message": "q"}')

    assert status == 200
    assert body["ok"] is True
    assert body["reply"] == expected


@pytest.mark.asyncio
async def test_forward_unconfigured_tool() -> None:
    upstream = Upstream()

    status, body = await _relay(upstream=upstream).handle("/jobs/build", "POST", b'{"message": "build"}')

    assert status == 503
    assert body["ok"] is False
    assert body["code"] == "missing_config"
    assert body["config_key"] == "N8N_JOBS_BUILDER_URL"
    assert upstream.calls == []


@pytest.mark.asyncio
async def test_forward_upstream_500_raw_text() -> None:
    upstream = Upstream(httpx.Response(500, text="oops"))

    status, body = await _relay(upstream=upstream).handle("/rag/query", "POST", b'{"message": "q"}')

    assert status == 502
    assert body["ok"] is False
    assert body["code"] == "upstream_error"
    assert body["status"] == 500
    assert body["raw"] == "oops"
    assert body["tool"] == "rag_query"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path, payload",
    [("/relay", {"message": "q"}), ("/relay", {"message": "q", "tool": "teleport"}), ("/tools/teleport", {"message": "q"})],
)
async def test_unknown_tool(path: str, payload: dict[str, Any]) -> None:
    upstream = Upstream()

    status, body = await _relay(upstream=upstream).handle(path, "POST", json.dumps(payload).encode())

    assert status == 400
    assert body["code"] == "unknown_tool"
    assert upstream.calls == []


@pytest.mark.asyncio
async def test_internal_fault_is_contained() -> None:
    def broken(request: httpx.Request) -> httpx.Response:
        raise KeyError("boom")

    status, body = await _relay(upstream=broken).handle("/rag/query", "POST", b'{"message": "q"}')  # type: ignore[arg-type]

    assert status == 500
    assert body == {"ok": False, "error": "Internal error in /rag/query", "code": "internal_error"}


@pytest.mark.asyncio
async def test_logs_inbound_and_forward() -> None:
    messages: list[str] = []
    sink_id = logger.add(lambda m: messages.append(m.record["message"]), level="INFO")
    try:
        await _relay().handle("/rag/query", "POST", b'{"message": "q"}')
    finally:
        logger.remove(sink_id)

    assert any(m.startswith("Inbound POST /rag/query at ") for m in messages)
    assert "Forward rag_query: upstream status 200" in messages
