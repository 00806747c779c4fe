"""Tests for log secret masking."""

import logging

from wa_gateway.logging_config import SecretMaskFilter


def make_record(msg, *args):
    return logging.LogRecord("wa_gateway", logging.INFO, __file__, 1, msg, args, None)


def test_masks_secret_in_formatted_message():
    """Secrets are masked after %-style arguments are applied."""
    record = make_record("bridge token %s rejected", "tok-123")

    assert SecretMaskFilter(["tok-123"]).filter(record) is True
    assert record.getMessage() == "bridge token *** rejected"


def test_leaves_clean_records_untouched():
    record = make_record("Observer connected: %s", "abc")

    SecretMaskFilter(["tok-123"]).filter(record)

    assert record.args == ("abc",)
    assert record.getMessage() == "Observer connected: abc"


def test_unset_secrets_are_ignored():
    """None entries (unconfigured token or PIN) never mask anything."""
    record = make_record("nothing to hide")

    SecretMaskFilter([None, ""]).filter(record)

    assert record.getMessage() == "nothing to hide"
