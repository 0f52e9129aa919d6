"""Tests for the JSON log formatter."""

import json
import logging

from briefe_einfach.log import JSONFormatter


def make_record(**extra):
    record = logging.LogRecord("briefe_einfach.billing", logging.INFO, __file__, 1, "subscription activated", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formats_message_as_json():
    entry = json.loads(JSONFormatter().format(make_record()))

    assert entry["level"] == "INFO"
    assert entry["logger"] == "briefe_einfach.billing"
    assert entry["message"] == "subscription activated"
    assert "data" not in entry


def test_includes_structured_data():
    entry = json.loads(JSONFormatter().format(make_record(extra_data={"user_id": "u1", "customer_id": "cus_123"})))

    assert entry["data"] == {"user_id": "u1", "customer_id": "cus_123"}


def test_unserializable_data_falls_back_to_str():
    entry = json.loads(JSONFormatter().format(make_record(extra_data={"when": object})))

    assert entry["data"]["when"] == str(object)
