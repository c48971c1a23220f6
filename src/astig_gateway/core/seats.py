# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: astig-gateway

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from astig_gateway.core.types import Seat
from astig_gateway.utils.logger import logger

PACKAGED_SEATS_FILE = Path(__file__).resolve().parent.parent / "resources" / "seats.yaml"

DEFAULT_SEATS: tuple[Seat, ...] = (
    Seat(
        seat_id="architect",
        title="Architect",
        system_prompt="You are the Architect seat of the AERIS council. Judge the question through structure "
        "and long-term design. Be concise and concrete.",
    ),
    Seat(
        seat_id="operator",
        title="Operator",
        system_prompt="You are the Operator seat of the AERIS council. Judge the question through execution, "
        "cost and time. Be concise and concrete.",
    ),
    Seat(
        seat_id="skeptic",
        title="Skeptic",
        system_prompt="You are the Skeptic seat of the AERIS council. Look for risks, hidden assumptions and "
        "failure modes. Be concise and concrete.",
    ),
    Seat(
        seat_id="mentor",
        title="Mentor",
        system_prompt="You are the Mentor seat of the AERIS council. Consider the founder's focus and energy. "
        "Be concise and concrete.",
    ),
)


def _parse_seats(data: Any) -> list[Seat]:
    if not isinstance(data, dict) or not isinstance(data.get("seats"), list):
        raise ValueError("expected a mapping with a 'seats' list")

    seats = []
    for item in data["seats"]:
        if not isinstance(item, dict):
            raise ValueError(f"seat entry must be a mapping, got {type(item).__name__}")
        seats.append(
            Seat(
                seat_id=item.get("id"),
                title=item.get("title") or item.get("id"),
                system_prompt=item.get("system_prompt"),
            )
        )
    return seats


def load_seats(seats_file: Optional[str] = None) -> list[Seat]:
    """
    Loads council seats from YAML, in file order.

    Falls back to the built-in seats when the file is missing, unreadable or malformed.

    Raises:
        ValueError: Two seats share the same id.
    """
    path = Path(seats_file) if seats_file else PACKAGED_SEATS_FILE

    if not path.exists():
        logger.warning(f"Seats file not found at {path}. Using built-in seats.")
        seats = list(DEFAULT_SEATS)
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                seats = _parse_seats(yaml.safe_load(f))
        except (OSError, yaml.YAMLError, ValueError, ValidationError) as e:
            logger.error(f"Failed to load seats from {path}: {e}. Using built-in seats.")
            seats = list(DEFAULT_SEATS)

    if not seats:
        logger.warning(f"Seats file {path} lists no seats. Using built-in seats.")
        seats = list(DEFAULT_SEATS)

    seen: set[str] = set()
    for seat in seats:
        if seat.seat_id in seen:
            raise ValueError(f"Duplicate seat id '{seat.seat_id}' in {path}.")
        seen.add(seat.seat_id)

    logger.info(f"Council seats loaded: {[s.seat_id for s in seats]}")
    return seats
