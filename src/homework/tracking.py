"""
Tracking code generation and booking link composition.

A tracking code is a short random token (``hw_`` + 10 alphanumerics by
default, 62**10 combinations) routed through a teacher's content so
bookings can be attributed back to one homework submission. The URL is
the studio's public booking page with UTM parameters appended.
"""

from __future__ import annotations

import re
import secrets
import string
from collections.abc import Callable
from typing import Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit
from uuid import UUID

from loguru import logger

from config import Settings, get_settings
from src.homework.errors import CodeGenerationExhausted, TrackingCodeCollision
from src.homework.types import TrackingCode

TRACKING_CODE_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{5,127}$")
CODE_ALPHABET = string.ascii_letters + string.digits


def normalize_tracking_code(raw: object) -> str | None:
    """Trim and validate an inbound tracking code; None when it cannot be one."""
    if not isinstance(raw, str):
        return None
    trimmed = raw.strip()
    if not TRACKING_CODE_PATTERN.match(trimmed):
        return None
    return trimmed


def append_query_params(url: str, params: dict[str, str]) -> str:
    """Add params to url, keeping any query it already has."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in params]
    query.extend(params.items())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class BookingUrlResolver(Protocol):
    def __call__(self, teacher_id: str) -> str: ...


class SettingsBookingUrlResolver:
    """Resolve every teacher to the booking page configured in settings."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def __call__(self, teacher_id: str) -> str:
        return self.settings.booking_base_url()


class TrackingCodeGenerator:
    """Produce tracking codes and claim one that the store accepts."""

    def __init__(
        self,
        booking_url: BookingUrlResolver | None = None,
        prefix: str | None = None,
        length: int | None = None,
        max_attempts: int | None = None,
        token_source: Callable[[int], str] | None = None,
    ):
        settings = get_settings()
        self.booking_url = booking_url or SettingsBookingUrlResolver(settings)
        self.prefix = settings.tracking_code_prefix if prefix is None else prefix
        self.length = length or settings.tracking_code_length
        self.max_attempts = max_attempts or settings.tracking_code_max_attempts
        self._token_source = token_source or _random_token

    def generate(self, submission_id: UUID | None, teacher_id: str) -> TrackingCode:
        """Build a fresh code and its booking URL. Stateless."""
        code = f"{self.prefix}{self._token_source(self.length)}"
        url = append_query_params(
            self.booking_url(teacher_id),
            {"utm_source": "social", "utm_medium": "homework", "utm_campaign": code},
        )
        return TrackingCode(code=code, url=url)

    def allocate(
        self,
        submission_id: UUID | None,
        teacher_id: str,
        claim: Callable[[TrackingCode], None],
    ) -> TrackingCode:
        """
        Generate codes until ``claim`` accepts one.

        ``claim`` persists the code and raises TrackingCodeCollision when
        the store's uniqueness constraint rejects it.

        Raises:
            CodeGenerationExhausted: every attempt collided
        """
        for attempt in range(1, self.max_attempts + 1):
            tracking = self.generate(submission_id, teacher_id)
            try:
                claim(tracking)
            except TrackingCodeCollision:
                logger.warning(
                    "Tracking code collision for submission {} (attempt {}/{})",
                    submission_id,
                    attempt,
                    self.max_attempts,
                )
                continue
            return tracking
        logger.error("Tracking code generation exhausted for submission {}", submission_id)
        raise CodeGenerationExhausted(self.max_attempts)


def _random_token(length: int) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
