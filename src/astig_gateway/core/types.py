# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: astig-gateway

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator


class ToolName(str, Enum):
    BIG_INGEST = "big_ingest"
    IMAGE_INGEST = "image_ingest"
    RAG_QUERY = "rag_query"
    JOBS_BUILDER = "jobs_builder"


class RelayRequest(BaseModel):
    """
    Inbound request envelope from the frontend.
    Unknown keys are kept so forwarded payloads stay intact.
    """

    model_config = ConfigDict(extra="allow")

    message: StrictStr
    actor: Optional[Union[str, int]] = None
    thread: Optional[Union[str, int]] = None
    tool: Optional[str] = None
    meta: Optional[dict[str, Any]] = None

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be empty")
        return value


class Seat(BaseModel):
    model_config = ConfigDict(frozen=True)

    seat_id: str
    title: str
    system_prompt: str


class SeatAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    seat_id: str
    answer_text: str
    ok: bool = True
    error: Optional[str] = None


class CouncilTrace(BaseModel):
    """
    Intermediate outputs of one consult, returned alongside the reply. Never persisted.
    """

    seats: list[SeatAnswer] = Field(default_factory=list)
    debate: str = ""


class CouncilResult(BaseModel):
    reply_text: str
    trace: CouncilTrace


class ForwardResult(BaseModel):
    tool: ToolName
    status_code: int
    ok: bool
    payload: Any = None
    raw_text: str = ""
