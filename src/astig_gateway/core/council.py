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
import uuid
from abc import ABC, abstractmethod
from typing import Sequence

from astig_gateway.core.llm_client import BaseLLMClient, LLMRequest
from astig_gateway.core.prompts import (
    ADVISOR_SYSTEM_PROMPT,
    DEBATE_SYSTEM_PROMPT,
    EMPTY_REPLY_FALLBACK,
    SYNTHESIS_SYSTEM_PROMPT,
    build_debate_prompt,
    build_synthesis_prompt,
)
from astig_gateway.core.types import CouncilResult, CouncilTrace, Seat, SeatAnswer
from astig_gateway.exceptions import GatewayError, UpstreamError
from astig_gateway.utils.logger import logger


class BaseConsultant(ABC):
    """
    Answers one inbound message with a reply and a trace.
    """

    @abstractmethod
    async def consult(self, message: str) -> CouncilResult:
        """
        Args:
            message: The user's question, as received.

        Returns:
            CouncilResult with the final reply text and the intermediate trace.

        Raises:
            GatewayError: A fatal step failed.
        """
        pass  # pragma: no cover


class SingleAdvisor(BaseConsultant):
    """
    One chat-completion call with the AERIS advisor prompt. The trace has no seats.
    """

    def __init__(self, client: BaseLLMClient, temperature: float = 0.4, max_tokens: int = 1000) -> None:
        self.client = client
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def consult(self, message: str) -> CouncilResult:
        request = LLMRequest.from_turn(
            ADVISOR_SYSTEM_PROMPT, message, temperature=self.temperature, max_tokens=self.max_tokens
        )
        response = await _complete(self.client, request, step="advisor")
        return CouncilResult(reply_text=response or EMPTY_REPLY_FALLBACK, trace=CouncilTrace())


class CouncilOrchestrator(BaseConsultant):
    """
    Runs the three council phases for one message:
    advisory fan-out over every seat, one debate pass, one synthesis pass.
    Each phase starts only after the previous one has fully settled.
    """

    def __init__(
        self,
        client: BaseLLMClient,
        seats: Sequence[Seat],
        temperature: float = 0.4,
        max_tokens: int = 1000,
    ) -> None:
        """
        Args:
            client: The chat-completion capability shared by all phases.
            seats: The council seats, in configuration order.
            temperature: Sampling temperature for every call.
            max_tokens: Completion token cap for every call.
        """
        if not seats:
            raise ValueError("The council requires at least one seat.")

        self.client = client
        self.seats = tuple(seats)
        self.temperature = temperature
        self.max_tokens = max_tokens

        logger.info(f"CouncilOrchestrator initialized with {len(self.seats)} seats.")

    def _request(self, system_prompt: str, user_text: str) -> LLMRequest:
        return LLMRequest.from_turn(system_prompt, user_text, temperature=self.temperature, max_tokens=self.max_tokens)

    async def _ask_seat(self, seat: Seat, message: str, session_id: str) -> SeatAnswer:
        """Resolves one seat call to an answer or a failure marker; never raises."""
        try:
            response = await self.client.get_completion(self._request(seat.system_prompt, message))
        except Exception as e:
            reason = e.message if isinstance(e, GatewayError) else (str(e) or type(e).__name__)
            logger.warning(f"Session {session_id}: seat '{seat.seat_id}' failed: {reason}")
            return SeatAnswer(
                seat_id=seat.seat_id,
                answer_text=f"[seat {seat.seat_id} unavailable: {reason}]",
                ok=False,
                error=reason,
            )
        return SeatAnswer(seat_id=seat.seat_id, answer_text=response.content)

    async def consult(self, message: str) -> CouncilResult:
        session_id = str(uuid.uuid4())
        logger.info(f"Session {session_id}: council received message of {len(message)} chars.")

        # --- Phase 1: Advisory (parallel fan-out) ---
        # gather preserves argument order, so answers follow seat configuration order.
        answers = list(await asyncio.gather(*(self._ask_seat(seat, message, session_id) for seat in self.seats)))
        failed = [a.seat_id for a in answers if not a.ok]
        logger.info(f"Session {session_id}: advisory phase settled ({len(answers) - len(failed)}/{len(answers)} ok).")

        # --- Phase 2: Debate ---
        debate = await _complete(
            self.client,
            self._request(DEBATE_SYSTEM_PROMPT, build_debate_prompt(message, answers)),
            step="debate",
        )
        logger.info(f"Session {session_id}: debate phase complete.")

        # --- Phase 3: Synthesis ---
        reply = await _complete(
            self.client,
            self._request(SYNTHESIS_SYSTEM_PROMPT, build_synthesis_prompt(message, answers, debate)),
            step="synthesis",
        )
        logger.info(f"Session {session_id}: synthesis phase complete.")

        return CouncilResult(
            reply_text=reply or EMPTY_REPLY_FALLBACK,
            trace=CouncilTrace(seats=answers, debate=debate),
        )


async def _complete(client: BaseLLMClient, request: LLMRequest, step: str) -> str:
    """Single fatal call: any failure surfaces as a GatewayError."""
    try:
        response = await client.get_completion(request)
    except GatewayError:
        logger.error(f"Council {step} call failed.")
        raise
    except Exception as e:
        logger.exception(f"Council {step} call failed")
        raise UpstreamError(f"Council {step} phase failed") from e
    return response.content
