"""Response parsing helpers shared by the experts and the aggregator.

Model output is unreliable: sometimes clean JSON, sometimes JSON inside a
markdown fence or prose, sometimes prose only. ``decode_json_object`` is
the only function here that raises (ParseError); everything else returns
None or a default when nothing usable is found.
"""

import json
import re
from typing import Any, Dict, Iterable, Optional

from finmoe.common.constants import ParsingConstants
from finmoe.common.exceptions import ParseError

_FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)
_NUMBER_TOKEN_RE = re.compile(r"\b(\d{1,3})\b")
_NUMERIC_RE = re.compile(r"-?\d+(?:\.\d+)?")
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_RANGE_RE = re.compile(r"\d+(?:\.\d+)?\s*%?\s*-\s*\d+(?:\.\d+)?")
_LIST_MARKER_RE = re.compile(r"^\s*\d+[.)]\s+", re.MULTILINE)

# Labels may repeat the hint they were asked with, e.g. "Risk level (Low/Medium/High):".
_HINT = r"(?:\s*\([^)]*\)|(?!\s*\())"

_CREDIT_SCORE_RE = re.compile(
    r"credit[\s_]*score(?:[\s_]*recommendation)?" + _HINT + r"\D{0,15}(\d{3})\b",
    re.IGNORECASE,
)
_RISK_LEVEL_RE = re.compile(
    r"risk[\s_]*(?:level|assessment)?" + _HINT + r"\W{0,5}(low|medium|moderate|high)\b",
    re.IGNORECASE,
)
_FRAUD_PROBABILITY_RE = re.compile(
    r"fraud[\s_]*probability" + _HINT + r"\D{0,15}?(\d+(?:\.\d+)?)\s*(%)?", re.IGNORECASE
)
_ESG_PILLAR_RE = re.compile(
    r"\b(environmental|social|governance)(?:[\s_]*score)?" + _HINT
    + r"\W{0,5}(\d{1,3}(?:\.\d+)?)\b",
    re.IGNORECASE,
)
_ESG_RATING_RE = re.compile(
    r"overall(?:[\s_]*esg)?[\s_]*rating\W{0,5}([A-Za-z][A-Za-z +\-]{0,20})", re.IGNORECASE
)

_RISK_LEVELS = {"low": "low", "medium": "medium", "moderate": "medium", "high": "high"}


def decode_json_object(text: str) -> Dict[str, Any]:
    """Decode the JSON object carried by a model response.

    Tries, in order: the whole text, a fenced code block, the outermost
    brace-delimited span.

    Raises:
        ParseError: no JSON object could be decoded
    """
    candidates = [text.strip()]
    fenced = _FENCE_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(data, dict):
            return normalize_keys(data)

    raise ParseError("No JSON object in model response", details={"preview": text[:80]})


def normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Lower snake_case the top-level keys ('riskLevel' -> 'risk_level')."""
    normalized = {}
    for key, value in data.items():
        snake = _CAMEL_RE.sub("_", str(key)).lower().replace(" ", "_").replace("-", "_")
        normalized[snake] = value
    return normalized


def first_present(data: Dict[str, Any], keys: Iterable[str]) -> Any:
    """Value of the first key that is present and not None."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def coerce_number(value: Any) -> Optional[float]:
    """Read a number from an int/float or a string like '72', '72%', '0.7'."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _NUMERIC_RE.search(value)
        if match:
            return float(match.group(0))
    return None


def normalize_probability(value: Any) -> Optional[float]:
    """Probability on a 0-1 scale, whether given as a fraction or a percentage."""
    number = coerce_number(value)
    if number is None or number < 0:
        return None
    is_percent = number > 1.0 or (isinstance(value, str) and "%" in value)
    if is_percent:
        number = number / 100.0
    return min(1.0, number)


def normalize_confidence(value: Any) -> Optional[float]:
    """Confidence on a 0-100 scale."""
    number = coerce_number(value)
    if number is None or number < 0:
        return None
    if number <= 1.0 and not (isinstance(value, str) and "%" in value):
        number = number * 100.0
    return min(100.0, number)


def normalize_risk_level(value: Any) -> Optional[str]:
    """'Low'/'Medium'/'Moderate'/'High' (any case, any padding) -> low|medium|high."""
    if not isinstance(value, str):
        return None
    match = re.search(r"\b(low|medium|moderate|high)\b", value, re.IGNORECASE)
    if not match:
        return None
    return _RISK_LEVELS[match.group(1).lower()]


def as_text(value: Any) -> Optional[str]:
    """Flatten a reasoning-style field (string, list, dict) into one string."""
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (list, tuple)):
        parts = [as_text(item) for item in value]
        return "; ".join(p for p in parts if p) or None
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True)
    return str(value)


def find_score(text: str) -> Optional[int]:
    """First integer token that reads like a score.

    0-100 is a percentage-style score, 300-850 a credit-score-style one;
    anything else is skipped, as are list numbering and range hints
    such as '300-850'.
    """
    text = _RANGE_RE.sub(" ", _LIST_MARKER_RE.sub("", text))
    for match in _NUMBER_TOKEN_RE.finditer(text):
        value = int(match.group(1))
        if ParsingConstants.PERCENT_SCORE_MIN <= value <= ParsingConstants.PERCENT_SCORE_MAX:
            return value
        if ParsingConstants.CREDIT_SCORE_MIN <= value <= ParsingConstants.CREDIT_SCORE_MAX:
            return value
    return None


def extract_score_from_text(text: str, default: int = ParsingConstants.DEFAULT_SCORE) -> int:
    """Score heuristically read from prose, or ``default``."""
    score = find_score(text)
    return default if score is None else score


def is_credit_score(value: Optional[float]) -> bool:
    return (
        value is not None
        and ParsingConstants.CREDIT_SCORE_MIN <= value <= ParsingConstants.CREDIT_SCORE_MAX
    )


def find_credit_score(text: str) -> Optional[int]:
    """A labelled credit score ('credit score: 712') in the 300-850 range."""
    match = _CREDIT_SCORE_RE.search(text)
    if match and is_credit_score(int(match.group(1))):
        return int(match.group(1))
    return None


def find_risk_level(text: str) -> Optional[str]:
    match = _RISK_LEVEL_RE.search(text)
    return _RISK_LEVELS[match.group(1).lower()] if match else None


def find_fraud_probability(text: str) -> Optional[float]:
    match = _FRAUD_PROBABILITY_RE.search(text)
    if not match:
        return None
    raw = match.group(1) + (match.group(2) or "")
    return normalize_probability(raw)


def find_esg_pillars(text: str) -> Dict[str, float]:
    """Environmental/social/governance scores mentioned in prose."""
    pillars: Dict[str, float] = {}
    for name, value in _ESG_PILLAR_RE.findall(text):
        key = name.lower()
        number = float(value)
        if key not in pillars and 0 <= number <= 100:
            pillars[key] = number
    return pillars


def find_esg_rating(text: str) -> Optional[str]:
    match = _ESG_RATING_RE.search(text)
    return match.group(1).strip() if match else None


def preview(text: str, limit: int = ParsingConstants.REASONING_PREVIEW_CHARS) -> str:
    """Reasoning stand-in when only prose is available."""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
