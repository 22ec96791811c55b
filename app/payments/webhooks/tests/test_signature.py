"""
Tests for WebhookSignatureValidator.

Tests cover:
- Header parsing (order, whitespace, malformed parts)
- Accepting a correct signature and rejecting any tampered input
- Missing headers and a missing secret
- Timestamp extraction and staleness
"""

from unittest.mock import MagicMock

import pytest
from freezegun import freeze_time

from payments.webhooks.signature import WebhookSignatureValidator, parse_signature
from payments.webhooks.tests.conftest import sign

SECRET = "S"
DATA_ID = "123"
REQUEST_ID = "abc"
TS = "1700000000"


@pytest.fixture
def validator():
    return WebhookSignatureValidator(secret=SECRET)


@pytest.fixture
def header():
    return sign(DATA_ID, REQUEST_ID, ts=TS, secret=SECRET)


# =============================================================================
# Header Parsing
# =============================================================================


class TestParseSignature:
    """Tests for parse_signature()."""

    def test_parses_pairs(self):
        assert parse_signature("ts=1700000000,v1=abc123") == {
            "ts": "1700000000",
            "v1": "abc123",
        }

    def test_trims_whitespace_and_ignores_order(self):
        assert parse_signature(" v1 = abc , ts= 17 ") == {"v1": "abc", "ts": "17"}

    def test_ignores_parts_without_equals(self):
        assert parse_signature("garbage,ts=1") == {"ts": "1"}

    def test_splits_on_first_equals(self):
        assert parse_signature("v1=a=b") == {"v1": "a=b"}


# =============================================================================
# Validation
# =============================================================================


class TestValidate:
    """Tests for WebhookSignatureValidator.validate()."""

    def test_accepts_correct_signature(self, validator, header):
        assert validator.validate(header, REQUEST_ID, DATA_ID) is True

    def test_accepts_reordered_header(self, validator, header):
        ts_part, v1_part = header.split(",")

        assert validator.validate(f"{v1_part}, {ts_part}", REQUEST_ID, DATA_ID) is True

    def test_rejects_altered_digest(self, validator, header):
        ts_part, v1_part = header.split(",")
        last = v1_part[-1]
        altered = v1_part[:-1] + ("0" if last != "0" else "1")

        assert validator.validate(f"{ts_part},{altered}", REQUEST_ID, DATA_ID) is False

    def test_rejects_altered_timestamp(self, validator, header):
        altered = header.replace(f"ts={TS}", "ts=1700000001")

        assert validator.validate(altered, REQUEST_ID, DATA_ID) is False

    def test_rejects_other_data_id(self, validator, header):
        assert validator.validate(header, REQUEST_ID, "124") is False

    def test_rejects_other_request_id(self, validator, header):
        assert validator.validate(header, "abd", DATA_ID) is False

    def test_rejects_other_secret(self, header):
        assert WebhookSignatureValidator(secret="T").validate(header, REQUEST_ID, DATA_ID) is False

    @pytest.mark.parametrize(
        "signature,request_id",
        [(None, REQUEST_ID), ("", REQUEST_ID), ("ts=1,v1=ab", None), ("ts=1,v1=ab", "")],
    )
    def test_missing_headers_rejected(self, validator, signature, request_id):
        assert validator.validate(signature, request_id, DATA_ID) is False

    @pytest.mark.parametrize("signature", ["v1=abc", "ts=1700000000", "nonsense"])
    def test_incomplete_header_rejected(self, validator, signature):
        assert validator.validate(signature, REQUEST_ID, DATA_ID) is False

    def test_missing_secret_accepts_with_warning(self):
        logger = MagicMock()
        validator = WebhookSignatureValidator(secret="", logger=logger)

        assert validator.validate("ts=1,v1=whatever", REQUEST_ID, DATA_ID) is True
        assert "not configured" in logger.warning.call_args[0][0]

    def test_secret_defaults_to_settings(self, settings):
        settings.MERCADOPAGO_WEBHOOK_SECRET = SECRET

        assert WebhookSignatureValidator().secret == SECRET


# =============================================================================
# Timestamps
# =============================================================================


class TestTimestamps:
    """Tests for extract_timestamp() and is_too_old()."""

    def test_extract_timestamp(self, validator, header):
        assert validator.extract_timestamp(header) == TS

    @pytest.mark.parametrize("signature", [None, "", "v1=abc"])
    def test_extract_timestamp_missing(self, validator, signature):
        assert validator.extract_timestamp(signature) is None

    @freeze_time("2023-11-14 22:13:30")
    def test_recent_timestamp_is_fresh(self, validator):
        assert validator.is_too_old(TS) is False

    @freeze_time("2023-11-14 22:18:21")
    def test_old_timestamp(self, validator):
        assert validator.is_too_old(TS) is True

    @freeze_time("2023-11-14 22:15:00")
    def test_custom_max_age(self, validator):
        assert validator.is_too_old(int(TS), max_age_seconds=60) is True
        assert validator.is_too_old(int(TS), max_age_seconds=600) is False

    @pytest.mark.parametrize("ts", [None, "", "not-a-number"])
    def test_unparseable_timestamp_is_too_old(self, validator, ts):
        assert validator.is_too_old(ts) is True
