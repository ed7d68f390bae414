"""Parsers for queue and notification payloads."""

from __future__ import annotations

import json
from typing import Any

from cronkeeper.queue.models import PlatformEvent


class ParseError(ValueError):
    """Raised when a payload cannot be parsed."""


class JSONParser:
    """Parse UTF-8 JSON payloads into dictionaries."""

    def parse(self, body: bytes | str) -> dict[str, Any]:
        try:
            text = body.decode("utf-8") if isinstance(body, bytes) else body
            parsed = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ParseError(f"Failed to parse JSON payload: {exc}") from exc
        if not isinstance(parsed, dict):
            raise ParseError("JSON payload must decode to an object")
        return parsed


def parse_platform_event(body: bytes | str) -> PlatformEvent:
    """Decode a CloudWatch-style event envelope."""
    payload = JSONParser().parse(body)
    detail_type = payload.get("detail-type")
    if not isinstance(detail_type, str):
        raise ParseError("event envelope has no detail-type")
    detail = payload.get("detail") or {}
    if not isinstance(detail, dict):
        raise ParseError("event detail must be an object")
    resources = payload.get("resources") or []
    if not isinstance(resources, list):
        raise ParseError("event resources must be a list")
    return PlatformEvent(
        event_id=str(payload.get("id", "")),
        detail_type=detail_type,
        source=str(payload.get("source", "")),
        detail=detail,
        resources=[str(item) for item in resources],
    )
