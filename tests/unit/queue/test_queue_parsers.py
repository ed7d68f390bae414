from __future__ import annotations

import json

import pytest
from hypothesis import given
from hypothesis import strategies as st

from cronkeeper.queue import JSONParser, ParseError, parse_platform_event


def test_json_parser_accepts_bytes_and_str() -> None:
    assert JSONParser().parse(b'{"a": 1}') == {"a": 1}
    assert JSONParser().parse('{"a": 1}') == {"a": 1}


@pytest.mark.parametrize("body", [b"{not json", b"[1, 2]", b"\xff\xfe"])
def test_json_parser_rejects_invalid_payloads(body: bytes) -> None:
    with pytest.raises(ParseError):
        JSONParser().parse(body)


def test_parse_platform_event_reads_envelope() -> None:
    event = parse_platform_event(
        json.dumps(
            {
                "id": "evt-1",
                "source": "aws.events",
                "detail-type": "Scheduled Event",
                "resources": ["arn:aws:events:eu-west-1:1:rule/cron--a"],
                "detail": {},
            }
        )
    )
    assert event.event_id == "evt-1"
    assert event.detail_type == "Scheduled Event"
    assert event.resources == ["arn:aws:events:eu-west-1:1:rule/cron--a"]


@pytest.mark.parametrize(
    "payload",
    [{"detail": {}}, {"detail-type": "x", "detail": [1]}, {"detail-type": "x", "resources": "arn"}],
)
def test_parse_platform_event_rejects_malformed_envelopes(payload: dict[str, object]) -> None:
    with pytest.raises(ParseError):
        parse_platform_event(json.dumps(payload))


@given(detail_type=st.text(max_size=40), detail=st.dictionaries(st.text(max_size=10), st.integers(), max_size=5))
def test_property_envelope_fields_survive_parsing(detail_type: str, detail: dict[str, int]) -> None:
    body = json.dumps({"detail-type": detail_type, "detail": detail}).encode("utf-8")
    event = parse_platform_event(body)
    assert event.detail_type == detail_type
    assert event.detail == detail
    assert event.resources == []
