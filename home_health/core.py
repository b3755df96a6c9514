import json
import logging
import math
import random
import re
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from .models import FreeTextPayload, RawPayload, ReadingFields, StructuredPayload

logger = logging.getLogger(__name__)

# Key fallback chains, tried in order
PM25_KEYS = ("pm25", "PM25")
CO2_KEYS = ("co2", "CO2")
VOC_KEYS = ("voc", "VOC", "adc")
TEMPERATURE_KEYS = ("temperature", "temp")
HUMIDITY_KEYS = ("humidity", "humid")
DEVICE_ID_KEYS = ("deviceId", "device_id")

# Free-text dump, e.g. "adc reading: 20, co2: (ppm) 12, temp: 28.28, humidity: 54.25"
FREE_TEXT_MARKERS = (
    ("adc reading:", "adc"),
    ("co2:", "co2"),
    ("temp:", "temperature"),
    ("humidity:", "humidity"),
)
FREE_TEXT_FIELDS = ("adc", "co2", "temperature", "humidity")
_NUMBER_RE = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)")


def decode_payload(body: Union[bytes, str, None]) -> RawPayload:
    """
    Resolve raw message bytes into a tagged payload.

    A JSON object becomes a StructuredPayload. Everything else (invalid JSON,
    JSON arrays or scalars) is FreeTextPayload; a JSON string contributes its
    decoded value.
    """
    if body is None:
        return FreeTextPayload("")
    if isinstance(body, bytes):
        text = body.decode("utf-8", errors="replace")
    else:
        text = body
    text = text.strip()
    if not text:
        return FreeTextPayload("")

    try:
        decoded = json.loads(text)
    except ValueError:
        # JSONDecodeError, or an integer literal past the interpreter digit limit
        return FreeTextPayload(text)

    if isinstance(decoded, dict):
        return StructuredPayload(decoded)
    if isinstance(decoded, str):
        return FreeTextPayload(decoded)
    return FreeTextPayload(text)


def coerce_number(value: Any) -> Optional[float]:
    """Return a finite float, or None when the value is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (OverflowError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def first_number(mapping: Mapping[str, Any], keys: Sequence[str], default: float = 0.0) -> float:
    for key in keys:
        if key in mapping:
            number = coerce_number(mapping[key])
            if number is not None:
                return number
    return default


def _device_id(mapping: Mapping[str, Any], sender: Optional[str]) -> str:
    for key in DEVICE_ID_KEYS:
        value = mapping.get(key)
        if value is None or isinstance(value, (dict, list)):
            continue
        value = str(value).strip()
        if value:
            return value
    return sender or "unknown"


def normalize_fields(mapping: Mapping[str, Any], sender: Optional[str] = None) -> ReadingFields:
    """
    Map a loosely shaped key/value payload onto canonical reading fields.

    Every numeric field walks its key chain (e.g. voc -> VOC -> adc); values
    that fail numeric coercion count as absent and the final default is 0.
    Concentrations are clamped at 0 and humidity to 0..100.
    Never raises.
    """
    return ReadingFields(
        pm25=max(0.0, first_number(mapping, PM25_KEYS)),
        co2=max(0.0, first_number(mapping, CO2_KEYS)),
        voc=max(0.0, first_number(mapping, VOC_KEYS)),
        temperature=first_number(mapping, TEMPERATURE_KEYS),
        humidity=min(100.0, max(0.0, first_number(mapping, HUMIDITY_KEYS))),
        device_id=_device_id(mapping, sender),
    )


def synthetic_pm25(rng: random.Random) -> float:
    """
    Stand-in PM2.5 for devices that have no particulate sensor.
    80% in [0, 30], 15% in [30, 60], 5% in [60, 120].
    """
    roll = rng.random()
    if roll < 0.80:
        value = rng.uniform(0.0, 30.0)
    elif roll < 0.95:
        value = rng.uniform(30.0, 60.0)
    else:
        value = rng.uniform(60.0, 120.0)
    return round(value, 1)


def _number_after(clause: str, marker: str) -> Optional[float]:
    rest = clause[clause.index(marker) + len(marker):]
    if marker == "co2:" and "(ppm)" in rest:
        rest = rest[rest.index("(ppm)") + len("(ppm)"):]
    match = _NUMBER_RE.search(rest)
    if match is None:
        return None
    value = float(match.group(0))
    if not math.isfinite(value):
        raise ValueError(f"numeric token out of range: {match.group(0)[:20]}...")
    return value


def parse_free_text(text: str, rng: Optional[random.Random] = None) -> Dict[str, float]:
    """
    Parse the device's human readable dump.

    Returns:
      dict with any of adc / co2 / temperature / humidity found, plus
      voc (always 0) and pm25 (synthetic, the format carries none).
      On a malformed token every recognized field falls back to 0.
    """
    rng = rng or random.Random()
    try:
        fields: Dict[str, float] = {}
        for clause in text.split(","):
            lowered = clause.strip().lower()
            if not lowered:
                continue
            for marker, name in FREE_TEXT_MARKERS:
                if name in fields or marker not in lowered:
                    continue
                value = _number_after(lowered, marker)
                if value is not None:
                    fields[name] = value
    except Exception as e:
        logger.warning("Could not parse free-text payload %.80r: %s", text, e)
        fields = {name: 0.0 for name in FREE_TEXT_FIELDS}

    fields["voc"] = 0.0
    if "pm25" not in fields:
        fields["pm25"] = synthetic_pm25(rng)
    return fields


def normalize_payload(
    payload: RawPayload, sender: Optional[str] = None, rng: Optional[random.Random] = None
) -> ReadingFields:
    if isinstance(payload, StructuredPayload):
        return normalize_fields(payload.fields, sender)
    logger.debug("Free-text payload from %s: %r", sender, payload.text)
    return normalize_fields(parse_free_text(payload.text, rng), sender)
