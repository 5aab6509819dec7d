"""
Tests for eind.core.protocol and eind.core.identity
"""

import random

import pytest

from eind.core.identity import display_name, generate_peer_id
from eind.core.protocol import (
    MalformedPayload,
    build_payload,
    is_heartbeat,
    parse_payload,
)
from eind.models.chat import MessageKind


class TestIdentity:
    def test_generated_id_shape(self):
        peer_id = generate_peer_id(rng=random.Random(1))
        prefix, number = peer_id.split("-")
        assert prefix == "eind"
        assert 0 <= int(number) < 100000

    def test_generated_id_is_seedable(self):
        assert generate_peer_id(rng=random.Random(4)) == generate_peer_id(rng=random.Random(4))

    def test_custom_prefix(self):
        assert generate_peer_id("lab-", random.Random(1)).startswith("lab-")

    @pytest.mark.parametrize(
        "peer_id,name",
        [("eind-123", "User 123"), ("plain", "User plain"), ("a-b-c", "User b-c"), ("x-", "User x-")],
    )
    def test_display_name(self, peer_id, name):
        assert display_name(peer_id) == name


class TestPayloads:
    def test_heartbeat_detection(self):
        assert is_heartbeat({"type": "heartbeat"})
        assert not is_heartbeat({"type": "text", "text": "heartbeat"})
        assert not is_heartbeat("heartbeat")

    def test_parse_text(self):
        parsed = parse_payload({"type": "text", "text": "hi", "content": None})
        assert parsed.kind == MessageKind.TEXT
        assert parsed.body == "hi"

    def test_parse_accepts_file_name_alias(self):
        parsed = parse_payload({"type": "video", "content": "data:", "fileName": "v.mp4"})
        assert parsed.file_name == "v.mp4"

    def test_parse_ignores_unknown_fields(self):
        parsed = parse_payload({"type": "text", "text": "hi", "extra": 1})
        assert parsed.body == "hi"

    def test_empty_content_falls_back_to_text(self):
        parsed = parse_payload({"type": "text", "content": "", "text": "hi"})
        assert parsed.body == "hi"

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "sticker", "content": "x"},
            {"type": "image"},
            {"type": "text", "content": "", "text": ""},
            [1, 2],
        ],
    )
    def test_parse_rejects(self, payload):
        with pytest.raises(MalformedPayload):
            parse_payload(payload)

    def test_build_text_payload(self):
        assert build_payload(MessageKind.TEXT, "hi") == {
            "type": "text",
            "content": "hi",
            "fileName": None,
            "text": "hi",
        }

    def test_built_payload_parses_back(self):
        wire = build_payload(MessageKind.IMAGE, "data:image/png;base64,AA", "p.png")
        parsed = parse_payload(wire)
        assert parsed.kind == MessageKind.IMAGE
        assert parsed.body == "data:image/png;base64,AA"
        assert parsed.file_name == "p.png"
