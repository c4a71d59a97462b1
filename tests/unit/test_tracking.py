"""
Unit tests for tracking code generation and booking link composition.
"""

from urllib.parse import parse_qs, urlsplit

import pytest

from src.homework.errors import CodeGenerationExhausted, TrackingCodeCollision
from src.homework.tracking import (
    TRACKING_CODE_PATTERN,
    SettingsBookingUrlResolver,
    TrackingCodeGenerator,
    append_query_params,
    normalize_tracking_code,
)


@pytest.fixture
def generator():
    return TrackingCodeGenerator(booking_url=lambda teacher_id: "https://studio.example.com/zenith/book")


class TestGenerate:
    def test_code_has_prefix_and_random_body(self, generator):
        tracking = generator.generate(None, "teacher-1")

        assert tracking.code.startswith("hw_")
        body = tracking.code[len("hw_"):]
        assert len(body) == 10
        assert body.isalnum()
        assert TRACKING_CODE_PATTERN.match(tracking.code)

    def test_url_carries_utm_parameters(self, generator):
        tracking = generator.generate(None, "teacher-1")

        parts = urlsplit(tracking.url)
        query = parse_qs(parts.query)
        assert parts.path == "/zenith/book"
        assert query["utm_source"] == ["social"]
        assert query["utm_medium"] == ["homework"]
        assert query["utm_campaign"] == [tracking.code]

    def test_codes_are_pairwise_distinct(self, generator):
        codes = {generator.generate(None, "teacher-1").code for _ in range(500)}

        assert len(codes) == 500

    def test_base_url_resolved_per_teacher(self):
        seen = []

        def resolver(teacher_id):
            seen.append(teacher_id)
            return f"https://{teacher_id}.example.com/book"

        tracking = TrackingCodeGenerator(booking_url=resolver).generate(None, "alice")

        assert seen == ["alice"]
        assert tracking.url.startswith("https://alice.example.com/book?")

    def test_settings_resolver_uses_booking_path(self):
        url = SettingsBookingUrlResolver()("teacher-1")

        assert url.endswith("/book")


class TestAllocate:
    def test_returns_first_claimed_code(self, generator):
        claimed = []

        tracking = generator.allocate(None, "teacher-1", claimed.append)

        assert claimed == [tracking]

    def test_retries_after_collision(self):
        tokens = iter(["AAAAAAAAAA", "BBBBBBBBBB"])
        generator = TrackingCodeGenerator(
            booking_url=lambda t: "https://x.example.com/book",
            token_source=lambda length: next(tokens),
        )
        attempts = []

        def claim(tracking):
            attempts.append(tracking.code)
            if tracking.code == "hw_AAAAAAAAAA":
                raise TrackingCodeCollision(tracking.code)

        tracking = generator.allocate(None, "teacher-1", claim)

        assert attempts == ["hw_AAAAAAAAAA", "hw_BBBBBBBBBB"]
        assert tracking.code == "hw_BBBBBBBBBB"

    def test_gives_up_after_max_attempts(self):
        generator = TrackingCodeGenerator(
            booking_url=lambda t: "https://x.example.com/book",
            max_attempts=3,
            token_source=lambda length: "SAMESAMESA",
        )
        attempts = []

        def claim(tracking):
            attempts.append(tracking.code)
            raise TrackingCodeCollision(tracking.code)

        with pytest.raises(CodeGenerationExhausted) as exc_info:
            generator.allocate(None, "teacher-1", claim)

        assert len(attempts) == 3
        assert exc_info.value.attempts == 3


class TestNormalize:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("  hw_abc123XYZ0  ", "hw_abc123XYZ0"),
            ("flow_1234abcd_lx9", "flow_1234abcd_lx9"),
            ("short", None),
            ("_leading_underscore", None),
            ("has space inside", None),
            ("", None),
            (None, None),
            (12345678, None),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_tracking_code(raw) == expected


def test_append_query_params_keeps_existing_query():
    url = append_query_params("https://x.example.com/book?teacher=t1&utm_source=old", {"utm_source": "social"})

    query = parse_qs(urlsplit(url).query)
    assert query == {"teacher": ["t1"], "utm_source": ["social"]}
