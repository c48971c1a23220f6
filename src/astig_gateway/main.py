# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: astig-gateway

import asyncio
import functools
from collections.abc import Callable, Coroutine
from typing import Any, Optional, TypeVar

import click
import uvicorn

from astig_gateway.core.council import BaseConsultant, CouncilOrchestrator, SingleAdvisor
from astig_gateway.core.llm_client import BaseLLMClient, LLMRequest, MockLLMClient, OpenAILLMClient
from astig_gateway.core.seats import load_seats
from astig_gateway.exceptions import GatewayError
from astig_gateway.settings import Settings
from astig_gateway.utils.logger import logger

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])


def async_command(f: F) -> Callable[..., Any]:
    """Decorator to run a click command in an async loop."""

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def _echo_responder(request: LLMRequest) -> str:
    """Offline stand-in: acknowledges the first line of the user turn."""
    lines = request.user_text.strip().splitlines()
    return f"ack: {lines[0][:80] if lines else ''}"


@click.group()
def cli() -> None:
    """astig-gateway: AERIS council relay for astig.systems."""


@cli.command()
@click.option("--host", default=None, help="Interface to bind. Defaults to HOST or 0.0.0.0.")
@click.option("--port", default=None, type=int, help="Port to listen on. Defaults to PORT or 8080.")
def serve(host: Optional[str], port: Optional[int]) -> None:
    """Run the HTTP gateway."""
    from astig_gateway.server import create_app

    settings = Settings()
    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info(f"[astig-gateway] Listening on port {bind_port}")
    uvicorn.run(create_app(settings), host=bind_host, port=bind_port)


@cli.command()
@click.argument("query")
@click.option("--mock", is_flag=True, default=False, help="Use an offline echo model instead of OpenAI.")
@click.option("--single", is_flag=True, default=False, help="Ask the single AERIS advisor instead of the council.")
@click.option("--show-trace", is_flag=True, default=False, help="Display every seat answer and the debate summary.")
@async_command
async def consult(query: str, mock: bool, single: bool, show_trace: bool) -> None:
    """
    Consult the council about QUERY and print the final recommendation.
    """
    if not query.strip():
        raise click.BadParameter("QUERY must not be empty.", param_hint="QUERY")

    settings = Settings()
    client: BaseLLMClient
    if mock:
        client = MockLLMClient(responder=_echo_responder)
    else:
        try:
            client = OpenAILLMClient(settings)
        except GatewayError as e:
            raise click.ClickException(f"{e.message} Use --mock to run offline.") from e

    consultant: BaseConsultant
    if single or settings.council_mode == "single":
        consultant = SingleAdvisor(client, settings.openai_temperature, settings.openai_max_tokens)
    else:
        seats = load_seats(settings.seats_file)
        click.echo(f"Seats: {[s.seat_id for s in seats]}")
        consultant = CouncilOrchestrator(client, seats, settings.openai_temperature, settings.openai_max_tokens)

    try:
        result = await consultant.consult(query)
    except GatewayError as e:
        raise click.ClickException(e.message) from e

    click.echo("\n--- REPLY ---")
    click.echo(result.reply_text)

    if show_trace:
        click.echo("\n--- SEATS ---")
        for answer in result.trace.seats:
            status = "ok" if answer.ok else "unavailable"
            click.echo(f"[{answer.seat_id}] ({status})")
            click.echo(f"  {answer.answer_text}")
            click.echo("-" * 40)
        click.echo("\n--- DEBATE ---")
        click.echo(result.trace.debate)

    click.echo("--- END ---")


if __name__ == "__main__":  # pragma: no cover
    cli()
