# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: astig-gateway

from typing import Any

REPLY_FIELDS = ("reply", "message", "content")

WORKFLOW_REPLY_FALLBACK = "Workflow completed, but returned no reply text."


def extract_reply(payload: Any, fallback: str = WORKFLOW_REPLY_FALLBACK) -> str:
    """
    Picks the reply text out of an arbitrary upstream payload.

    Looks for the first non-empty string among ``reply``, ``message`` and ``content``,
    in that order. A field that is present but blank or not a string does not count,
    so ``{"reply": "", "message": "m"}`` yields ``"m"``. A list payload (n8n item arrays)
    is read through its first mapping. Anything else yields ``fallback``.
    """
    if isinstance(payload, list):
        payload = next((item for item in payload if isinstance(item, dict)), None)

    if not isinstance(payload, dict):
        return fallback

    for field in REPLY_FIELDS:
        value = payload.get(field)
        if isinstance(value, str) and value.strip():
            return value
    return fallback
