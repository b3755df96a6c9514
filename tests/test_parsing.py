import math
import random
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from home_health.core import (
    coerce_number,
    decode_payload,
    normalize_fields,
    normalize_payload,
    parse_free_text,
    synthetic_pm25,
)
from home_health.models import FreeTextPayload, StructuredPayload

DUMP = "adc reading: 20, co2: (ppm) 12, temp: 28.28, humidity: 54.25"


def test_parse_device_dump():
    fields = parse_free_text(DUMP, random.Random(1))
    assert fields["adc"] == 20
    assert fields["co2"] == 12
    assert fields["temperature"] == 28.28
    assert fields["humidity"] == 54.25
    assert fields["voc"] == 0
    assert 0 <= fields["pm25"] <= 120


def test_parse_is_case_insensitive_and_ignores_unknown_clauses():
    fields = parse_free_text("ADC Reading: 7, battery: 88%, Humidity: 41.5", random.Random(1))
    assert fields["adc"] == 7
    assert fields["humidity"] == 41.5
    assert "co2" not in fields
    assert "battery" not in fields


def test_parse_co2_without_unit_tag():
    assert parse_free_text("co2: 655", random.Random(1))["co2"] == 655


def test_parse_garbage_keeps_defaults():
    fields = parse_free_text("hello world", random.Random(1))
    assert fields["voc"] == 0
    assert "pm25" in fields
    assert "temperature" not in fields


def test_synthetic_pm25_is_reproducible_with_seed():
    assert synthetic_pm25(random.Random(42)) == synthetic_pm25(random.Random(42))


def test_synthetic_pm25_tiers():
    rng = random.Random(7)
    values = [synthetic_pm25(rng) for _ in range(2000)]
    assert all(0 <= v <= 120 for v in values)
    low = sum(1 for v in values if v <= 30) / len(values)
    assert 0.7 < low < 0.9


def test_decode_json_object():
    payload = decode_payload(b'{"pm25": 15, "co2": 450}')
    assert isinstance(payload, StructuredPayload)
    assert payload.fields["co2"] == 450


def test_decode_free_text_and_invalid_json():
    assert decode_payload(DUMP.encode()) == FreeTextPayload(DUMP)
    assert isinstance(decode_payload(b"{bad json"), FreeTextPayload)
    assert decode_payload(b"") == FreeTextPayload("")
    assert decode_payload(b"[1, 2]") == FreeTextPayload("[1, 2]")
    assert decode_payload('"temp: 21"') == FreeTextPayload("temp: 21")


def test_coerce_number():
    assert coerce_number("12.5") == 12.5
    assert coerce_number(3) == 3.0
    assert coerce_number("abc") is None
    assert coerce_number(True) is None
    assert coerce_number("nan") is None
    assert coerce_number(None) is None


def test_normalize_uses_fallback_keys():
    fields = normalize_fields({"PM25": "18", "CO2": 500, "VOC": 0.4, "temp": 21, "humid": 45, "device_id": "dev-7"})
    assert fields.pm25 == 18
    assert fields.co2 == 500
    assert fields.voc == 0.4
    assert fields.temperature == 21
    assert fields.humidity == 45
    assert fields.device_id == "dev-7"


def test_normalize_non_numeric_falls_through_to_next_key():
    fields = normalize_fields({"pm25": "n/a", "PM25": 9, "voc": "x", "adc": 3})
    assert fields.pm25 == 9
    assert fields.voc == 3


def test_normalize_missing_fields_default_to_zero_and_sender():
    fields = normalize_fields({}, sender="192.168.1.40")
    assert (fields.pm25, fields.co2, fields.voc, fields.temperature, fields.humidity) == (0, 0, 0, 0, 0)
    assert fields.device_id == "192.168.1.40"


def test_normalize_clamps_ranges():
    fields = normalize_fields({"pm25": -4, "humidity": 140, "temperature": -5})
    assert fields.pm25 == 0
    assert fields.humidity == 100
    assert fields.temperature == -5


def test_normalize_free_text_payload_keeps_voc_zero():
    fields = normalize_payload(FreeTextPayload(DUMP), "10.0.0.5", random.Random(3))
    assert fields.voc == 0
    assert fields.co2 == 12
    assert fields.temperature == 28.28
    assert fields.device_id == "10.0.0.5"


HUGE_INT = "1" + "0" * 400


@pytest.mark.parametrize(
    "value",
    [int(HUGE_INT), -int(HUGE_INT), "1e400", "inf", "-Infinity", "NaN", [1], {"a": 1}, "", "  "],
)
def test_coerce_rejects_hostile_values(value):
    assert coerce_number(value) is None


@pytest.mark.parametrize(
    "mapping",
    [
        {"pm25": int(HUGE_INT), "co2": "1e400", "voc": "inf", "temperature": [1], "humidity": {"a": 1}},
        {"pm25": [1], "PM25": "-inf", "deviceId": {"a": 1}},
        {"co2": -int(HUGE_INT), "temp": "nan", "humid": None},
    ],
)
def test_normalize_hostile_values_default_to_zero(mapping):
    fields = normalize_fields(mapping, sender="10.0.0.1")
    values = (fields.pm25, fields.co2, fields.voc, fields.temperature, fields.humidity)
    assert values == (0, 0, 0, 0, 0)
    assert fields.device_id == "10.0.0.1"


def test_decode_over_long_integer_literal_does_not_raise():
    payload = decode_payload('{"pm25": ' + "1" * 5000 + "}")
    fields = normalize_payload(payload, "10.0.0.1", random.Random(0))
    values = (fields.pm25, fields.co2, fields.voc, fields.temperature, fields.humidity)
    assert all(math.isfinite(v) for v in values)


def test_free_text_out_of_range_token_falls_back_to_zero():
    fields = parse_free_text("adc reading: 5, temp: " + HUGE_INT + ", humidity: 40", random.Random(1))
    assert fields["adc"] == 0
    assert fields["temperature"] == 0
    assert fields["humidity"] == 0
    assert fields["co2"] == 0
    assert fields["voc"] == 0
    assert 0 <= fields["pm25"] <= 120


def test_free_text_non_string_input_falls_back_to_zero():
    fields = parse_free_text(None, random.Random(1))
    assert {k: fields[k] for k in ("adc", "co2", "temperature", "humidity", "voc")} == {
        "adc": 0, "co2": 0, "temperature": 0, "humidity": 0, "voc": 0,
    }
    assert "pm25" in fields
