"""Growth plan parser.

Turns the free text returned by the generative model into validated plant
plans. The model is asked for bare JSON but routinely wraps it in markdown
fences or prose, so every stage here is defensive:

1. locate the JSON payload with a bracket-depth scan
2. strip markdown fences
3. decode
4. check the top-level shape (object vs array)
5. check required fields
6. coerce every value to trimmed text

A payload the model explicitly marked ``"isValid": false`` is a *rejection*,
not a parse failure, and is reported as a ``RejectedPlant`` so callers can
answer 400 instead of 422.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from ensogrow.errors import UpstreamParseError

logger = logging.getLogger(__name__)

REQUIRED_PLANT_FIELDS = ("name", "description", "successRate", "steps", "difficultyLevel")
REQUIRED_STEP_FIELDS = ("title", "description", "estimatedTime")

DEFAULT_REJECTION_REASON = "Please provide a valid plant name"

_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?", re.IGNORECASE)

_OPENERS = {"[": "]", "{": "}"}
LOG_PREVIEW_CHARS = 200


class Shape(str, Enum):
    """Expected top-level JSON shape."""

    OBJECT = "single-object"
    ARRAY = "array-of-objects"


class GrowthPlanParseError(UpstreamParseError):
    """Base class for AI responses that could not be understood."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(error=f"Failed to parse AI response: {detail}")


class NoStructureFound(GrowthPlanParseError):
    pass


class MalformedJson(GrowthPlanParseError):
    pass


class UnexpectedShape(GrowthPlanParseError):
    pass


class MissingField(GrowthPlanParseError):
    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Missing required field '{field_name}' in recommendation")


@dataclass
class ParsedStep:
    title: str
    description: str
    estimated_time: str


@dataclass
class ParsedPlant:
    name: str
    description: str
    success_rate: str
    difficulty_level: str
    steps: List[ParsedStep] = field(default_factory=list)


@dataclass
class RejectedPlant:
    """The generator refused the request (e.g. not a real plant)."""

    reason: str
    name: Optional[str] = None


@dataclass
class ParsedDiagnosis:
    needs_attention: bool
    diagnosis: str
    steps: List[ParsedStep] = field(default_factory=list)


@dataclass
class BatchParseResult:
    plants: List[ParsedPlant]
    rejected: List[RejectedPlant]


def _balanced_end(text: str, start: int) -> Optional[int]:
    """
    Return the index just past the bracket that closes ``text[start]``.

    Tracks nesting depth of both bracket kinds and skips over JSON string
    literals (including escaped quotes), so braces inside descriptions do
    not end the scan early. Returns None if the opener is never balanced.
    """
    stack = []
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in ("]", "}"):
            if not stack or stack[-1] != ch:
                # Mismatched closer: the payload is not well formed
                return None
            stack.pop()
            if not stack:
                return i + 1

    return None


def _span_from(text: str, start: int) -> Tuple[int, int]:
    end = _balanced_end(text, start)
    if end is None:
        # Unbalanced; hand the remainder to the decoder so the failure is
        # reported as malformed JSON rather than a missing payload.
        return start, len(text)
    return start, end


def extract_json_payload(raw_text: str, shape: Shape) -> str:
    """
    Locate the JSON payload inside noisy model output.

    The scan starts at the first opener of the expected kind. If an opener of
    the other kind appears earlier and its balanced span encloses that
    candidate (e.g. an object whose ``steps`` array was mistaken for the
    payload), the enclosing span wins and the shape check reports it.

    Raises:
        NoStructureFound: If the text contains neither ``[`` nor ``{``
    """
    text = raw_text or ""
    expected, other = ("[", "{") if shape == Shape.ARRAY else ("{", "[")

    expected_at = text.find(expected)
    other_at = text.find(other)

    if expected_at == -1 and other_at == -1:
        kind = "array" if shape == Shape.ARRAY else "object"
        logger.warning(f"No JSON {kind} in model response: {text[:LOG_PREVIEW_CHARS]!r}")
        raise NoStructureFound(f"No JSON {kind} found in response")

    if expected_at == -1:
        start, end = _span_from(text, other_at)
    else:
        start, end = _span_from(text, expected_at)
        if other_at != -1 and other_at < expected_at:
            outer_end = _balanced_end(text, other_at)
            if outer_end is not None and outer_end >= end:
                start, end = other_at, outer_end

    return strip_code_fences(text[start:end])


def strip_code_fences(payload: str) -> str:
    """Remove markdown code-fence markers and surrounding whitespace."""
    return _FENCE_RE.sub("", payload).strip()


def coerce_text(value: Any) -> str:
    """Coerce a JSON scalar to trimmed text; integral floats lose their ".0"."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value).strip()


def _decode(payload: str) -> Any:
    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        logger.warning(f"Malformed JSON in model response ({e}): {payload[:LOG_PREVIEW_CHARS]!r}")
        raise MalformedJson(str(e))


def _parse_steps(raw_steps: Any, field_prefix: str = "steps") -> List[ParsedStep]:
    if not isinstance(raw_steps, list):
        raise UnexpectedShape(f"'{field_prefix}' is not an array")

    steps = []
    for index, raw_step in enumerate(raw_steps):
        if not isinstance(raw_step, dict):
            raise UnexpectedShape(f"'{field_prefix}[{index}]' is not an object")
        values = {}
        for name in REQUIRED_STEP_FIELDS:
            text = coerce_text(raw_step.get(name))
            if not text:
                raise MissingField(f"{field_prefix}[{index}].{name}")
            values[name] = text
        steps.append(ParsedStep(
            title=values["title"],
            description=values["description"],
            estimated_time=values["estimatedTime"],
        ))
    return steps


def _is_rejection(record: Dict[str, Any]) -> bool:
    return record.get("isValid") is False


def _rejection_from(record: Dict[str, Any]) -> RejectedPlant:
    reason = coerce_text(record.get("error")) or DEFAULT_REJECTION_REASON
    name = coerce_text(record.get("name")) or None
    return RejectedPlant(reason=reason, name=name)


def validate_plant_record(record: Any) -> ParsedPlant:
    """
    Validate one candidate plant object and coerce its fields.

    Raises:
        UnexpectedShape: If the record is not an object or steps is not a list
        MissingField: If a required field is absent or empty
    """
    if not isinstance(record, dict):
        raise UnexpectedShape("Recommendation entry is not an object")

    for name in REQUIRED_PLANT_FIELDS:
        value = record.get(name)
        if value in (None, "", [], {}):
            raise MissingField(name)
        if name != "steps" and (isinstance(value, (dict, list)) or not coerce_text(value)):
            raise MissingField(name)

    return ParsedPlant(
        name=coerce_text(record["name"]),
        description=coerce_text(record["description"]),
        success_rate=coerce_text(record["successRate"]),
        difficulty_level=coerce_text(record["difficultyLevel"]),
        steps=_parse_steps(record["steps"]),
    )


def parse_growth_plans(raw_text: str, shape: Shape) -> Union[ParsedPlant, RejectedPlant, BatchParseResult]:
    """
    Parse model output into plant plans.

    Args:
        raw_text: Text returned by the generative model
        shape: ``Shape.OBJECT`` for a single targeted plant, ``Shape.ARRAY``
            for a batch of recommendations

    Returns:
        ``ParsedPlant`` or ``RejectedPlant`` for ``Shape.OBJECT``;
        ``BatchParseResult`` for ``Shape.ARRAY``

    Raises:
        GrowthPlanParseError: Any of its subclasses, naming what went wrong
    """
    payload = extract_json_payload(raw_text, shape)
    data = _decode(payload)

    if shape == Shape.OBJECT:
        if not isinstance(data, dict):
            raise UnexpectedShape("Parsed data is not an object")
        if _is_rejection(data):
            return _rejection_from(data)
        return validate_plant_record(data)

    if not isinstance(data, list):
        raise UnexpectedShape("Parsed data is not an array")

    plants = []
    rejected = []
    for record in data:
        if isinstance(record, dict) and _is_rejection(record):
            rejected.append(_rejection_from(record))
            continue
        plants.append(validate_plant_record(record))

    if rejected:
        logger.warning(f"Dropped {len(rejected)} recommendation(s) the model flagged as invalid")

    return BatchParseResult(plants=plants, rejected=rejected)


def parse_diagnosis(raw_text: str) -> ParsedDiagnosis:
    """
    Parse the image-diagnosis response.

    Expected payload::

        {"needsAttention": true, "diagnosis": "...", "steps": [...]}

    ``steps`` is only required when ``needsAttention`` is true.
    """
    payload = extract_json_payload(raw_text, Shape.OBJECT)
    data = _decode(payload)
    if not isinstance(data, dict):
        raise UnexpectedShape("Parsed data is not an object")

    if "needsAttention" not in data:
        raise MissingField("needsAttention")
    needs_attention = data["needsAttention"]
    if isinstance(needs_attention, str):
        needs_attention = needs_attention.strip().lower() == "true"
    needs_attention = bool(needs_attention)

    diagnosis = coerce_text(data.get("diagnosis"))
    if not diagnosis:
        raise MissingField("diagnosis")

    steps: List[ParsedStep] = []
    if needs_attention:
        raw_steps = data.get("steps")
        if not raw_steps:
            raise MissingField("steps")
        steps = _parse_steps(raw_steps)

    return ParsedDiagnosis(needs_attention=needs_attention, diagnosis=diagnosis, steps=steps)
