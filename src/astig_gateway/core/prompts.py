# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: astig-gateway

from typing import Sequence

from astig_gateway.core.types import SeatAnswer

ADVISOR_SYSTEM_PROMPT = (
    "You are AERIS, the founder's council-of-agents inside astig.systems. "
    "Be concise and practical. You are advising the creator of astig.systems."
)

DEBATE_SYSTEM_PROMPT = (
    "You are the neutral moderator of the AERIS council inside astig.systems. "
    "Several advisors have answered the same question. Summarize, without taking sides, "
    "where they agree, where they disagree, and which blind spots none of them addressed. "
    "Treat an advisor marked unavailable as having given no answer."
)

SYNTHESIS_SYSTEM_PROMPT = (
    "You are AERIS, the founder's council-of-agents inside astig.systems. "
    "Using the advisors' answers and the moderator's debate summary, give one decisive, "
    "practical final recommendation to the creator of astig.systems. "
    "Name the concrete next steps. Do not hedge between options."
)

EMPTY_REPLY_FALLBACK = "AERIS responded, but I could not read the reply payload."


def _format_answers(answers: Sequence[SeatAnswer]) -> str:
    return "\n\n".join(f"[{answer.seat_id}]\n{answer.answer_text}" for answer in answers)


def build_debate_prompt(question: str, answers: Sequence[SeatAnswer]) -> str:
    """User turn for the debate phase: the question and every seat's answer."""
    return f"Question:\n{question}\n\nAdvisor answers:\n\n{_format_answers(answers)}"


def build_synthesis_prompt(question: str, answers: Sequence[SeatAnswer], debate: str) -> str:
    """User turn for the synthesis phase: answers, debate summary and the question."""
    return (
        f"Advisor answers:\n\n{_format_answers(answers)}\n\n"
        f"Debate summary:\n{debate}\n\n"
        f"Original question:\n{question}"
    )
