"""
Response recovery: streamed LLM text -> typed analysis result.

Flow:
1. Accumulate the streamed fragments into one buffer
2. Pull every <think>...</think> block out as reasoning, leaving a cleaned buffer
3. Recover JSON from the cleaned buffer, most lenient tier last:
   a. direct parse
   b. boundary slice (first opener .. last closer), BOM + trailing commas stripped
   c. lenient parse of the slice: json5, then json_repair
4. Wrap the payload as an AnalysisResult, or the empty result if nothing parsed

Nothing in here raises on bad model output; failures are logged and degrade
to the empty result.
"""

import json
import re
import logging
from typing import Any, AsyncIterable, Iterable, NamedTuple, Optional, Union

import json5
from json_repair import repair_json

from .schemas import AnalysisResult

logger = logging.getLogger(__name__)

_THINK_RE = re.compile(r"<think>(.*?)</think>", re.DOTALL)
# Double-quoted strings are matched first and kept as-is, so only commas
# outside string literals are dropped.
_TRAILING_COMMA_RE = re.compile(r'("(?:\\.|[^"\\])*")|,(\s*[}\]])')

# expected shape -> (opening bracket, closing bracket, python type)
_SHAPES = {
    "object": ("{", "}", dict),
    "array": ("[", "]", list),
}

# Deeply nested output blows the parsers' recursion limit
_PARSE_ERRORS = (ValueError, RecursionError)


class ReasoningSplit(NamedTuple):
    cleaned: str
    reasoning: str


async def accumulate(fragments: Union[AsyncIterable[Optional[str]], Iterable[Optional[str]]]) -> str:
    """
    Concatenate streamed fragments in arrival order.
    Missing fragments (None) contribute nothing. Plain iterables are accepted
    too so a blocking source can feed the same pipeline.
    """
    parts = []
    if hasattr(fragments, "__aiter__"):
        async for fragment in fragments:
            parts.append(fragment or "")
    else:
        for fragment in fragments:
            parts.append(fragment or "")
    return "".join(parts)


def extract_reasoning(buffer: str) -> ReasoningSplit:
    """
    Split <think> blocks out of the buffer.
    Multiple blocks are joined with newlines in source order; an unterminated
    <think> simply does not match.
    """
    segments = [m.group(1).strip() for m in _THINK_RE.finditer(buffer)]
    if not segments:
        return ReasoningSplit(cleaned=buffer.strip(), reasoning="")
    cleaned = _THINK_RE.sub("", buffer).strip()
    return ReasoningSplit(cleaned=cleaned, reasoning="\n".join(segments))


def strip_trailing_commas(text: str) -> str:
    """Remove commas directly before } or ], leaving string contents alone."""
    return _TRAILING_COMMA_RE.sub(lambda m: m.group(1) or m.group(2), text)


def _check_shape(value: Any, expected_type: type) -> Any:
    if not isinstance(value, expected_type):
        raise ValueError(f"expected JSON {expected_type.__name__}, got {type(value).__name__}")
    return value


def _parse_lenient(text: str, expected_type: type) -> Any:
    """
    json5 covers single quotes, unquoted keys, comments and trailing commas;
    json_repair picks up the rest (missing commas, stray quotes, cut-off output).
    """
    try:
        return _check_shape(json5.loads(text), expected_type)
    except _PARSE_ERRORS as e:
        logger.warning(f"JSON5 parsing failed: {e}")
    return _check_shape(repair_json(text, return_objects=True), expected_type)


def recover_json(cleaned: str, expected_shape: str = "object") -> Optional[Any]:
    """
    Recover a JSON object (or array, in legacy array mode) from model output.
    Returns None if no tier succeeds.
    """
    opener, closer, expected_type = _SHAPES[expected_shape]

    # Tier 1: direct parse
    try:
        return _check_shape(json.loads(cleaned), expected_type)
    except _PARSE_ERRORS as e:
        logger.warning(f"Direct JSON parsing failed: {e}")

    # Tier 2: boundary slice
    text = cleaned.lstrip("\ufeff")
    start = text.find(opener)
    end = text.rfind(closer)
    if start == -1 or end == -1 or end <= start:
        logger.error(f"Could not find a JSON {expected_shape} (missing {opener} or {closer})")
        return None

    sliced = strip_trailing_commas(text[start:end + 1])
    logger.debug(f"Extracted JSON string via slice: {sliced[:1000]}")
    try:
        return _check_shape(json.loads(sliced), expected_type)
    except _PARSE_ERRORS as e:
        logger.warning(f"Slice JSON parsing failed: {e}")

    # Tier 3: lenient parse / syntax repair
    try:
        value = _parse_lenient(sliced, expected_type)
        logger.info("Recovered JSON after syntax repair")
        return value
    except _PARSE_ERRORS as e:
        logger.error(f"Final parsing error, extracted string was not recoverable: {type(e).__name__}: {e}")
        logger.error(f"Problematic JSON string: {sliced[:1000]}")
        return None


def build_result(payload: Optional[Any], reasoning: str = "") -> AnalysisResult:
    """
    Wrap a recovered payload as an AnalysisResult.
    Reasoning from <think> blocks wins; a "reasoning" field in the JSON is used
    only when no block was found.
    """
    if payload is None:
        return AnalysisResult.empty(reasoning=reasoning)

    if isinstance(payload, list):
        return AnalysisResult(data=payload, summary="", reasoning=reasoning)

    data = payload.get("data")
    if not isinstance(data, list):
        data = []

    summary = payload.get("summary")
    if summary is None:
        summary = ""
    elif not isinstance(summary, str):
        summary = json.dumps(summary)

    if not reasoning and isinstance(payload.get("reasoning"), str):
        reasoning = payload["reasoning"]

    return AnalysisResult(data=data, summary=summary, reasoning=reasoning)


def recover_result(buffer: str, expected_shape: str = "object") -> AnalysisResult:
    """Run extraction and JSON recovery over a complete completion buffer."""
    split = extract_reasoning(buffer)
    logger.debug(f"Extracted Reasoning: {split.reasoning}")
    logger.debug(f"Cleaned LLM Response: {split.cleaned}")
    payload = recover_json(split.cleaned, expected_shape)
    return build_result(payload, split.reasoning)
