"""Tests for policy resolution and the request-side schemas."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from app.access.policies import (
    DurationExpiration,
    FixedDateExpiration,
    NoExpiration,
    SelectedUsersAudience,
)
from app.schemas.link import (
    DateExpirationIn,
    DurationExpirationIn,
    LinkCreate,
    NoExpirationIn,
    NoVerificationIn,
    PasswordVerificationIn,
    PublicAudienceIn,
    SelectedUsersAudienceIn,
)

CREATED = datetime(2026, 3, 1, 8, 30, 0)


class TestExpirationPolicies:
    def test_no_expiration_resolves_to_none(self):
        assert NoExpiration().resolve(CREATED) is None

    def test_duration_is_relative_to_creation(self):
        assert DurationExpiration(seconds=3600).resolve(CREATED) == CREATED + timedelta(hours=1)

    @pytest.mark.parametrize("seconds", [0, -5])
    def test_duration_must_be_positive(self, seconds):
        with pytest.raises(ValueError):
            DurationExpiration(seconds=seconds)

    def test_fixed_date_is_normalized_to_naive_utc(self):
        aware = datetime(2026, 3, 2, 10, 0, tzinfo=timezone(timedelta(hours=2)))
        assert FixedDateExpiration(at=aware).resolve(CREATED) == datetime(2026, 3, 2, 8, 0)

    def test_fixed_date_ignores_creation_time(self):
        at = datetime(2030, 1, 1)
        assert FixedDateExpiration(at=at).resolve(CREATED) == at


class TestLinkCreateSchema:
    """The discriminated unions reject inconsistent type/value pairs."""

    def test_defaults(self):
        body = LinkCreate(file_id="f1", display_name="share")
        assert isinstance(body.expiration, NoExpirationIn)
        assert body.expiration.to_policy() == NoExpiration()
        assert isinstance(body.verification, NoVerificationIn)
        assert isinstance(body.audience, PublicAudienceIn)
        assert body.download_allowed is False
        assert body.access_limit is None

    def test_parses_each_variant(self):
        body = LinkCreate.model_validate({
            "file_id": "f1",
            "display_name": "share",
            "expiration": {"type": "duration", "seconds": 60},
            "verification": {"type": "password", "password": "s3cret"},
            "audience": {"type": "selected", "user_ids": ["a", "b"]},
        })
        assert isinstance(body.expiration, DurationExpirationIn)
        assert isinstance(body.verification, PasswordVerificationIn)
        assert isinstance(body.audience, SelectedUsersAudienceIn)
        assert body.audience.to_policy() == SelectedUsersAudience(user_ids=frozenset({"a", "b"}))

    def test_date_variant(self):
        body = LinkCreate.model_validate({
            "file_id": "f1",
            "display_name": "share",
            "expiration": {"type": "date", "expires_at": "2030-01-01T00:00:00Z"},
        })
        assert isinstance(body.expiration, DateExpirationIn)
        assert body.expiration.to_policy().resolve(CREATED) == datetime(2030, 1, 1)

    @pytest.mark.parametrize("payload", [
        {"expiration": {"type": "duration"}},
        {"expiration": {"type": "duration", "seconds": 0}},
        {"expiration": {"type": "duration", "seconds": 10**12}},
        {"expiration": {"type": "date"}},
        {"verification": {"type": "password"}},
        {"verification": {"type": "username", "username": ""}},
        {"audience": {"type": "selected", "user_ids": []}},
        {"access_limit": 0},
        {"display_name": ""},
    ])
    def test_rejects_invalid_payloads(self, payload):
        data = {"file_id": "f1", "display_name": "share"}
        data.update(payload)
        with pytest.raises(ValidationError):
            LinkCreate.model_validate(data)
