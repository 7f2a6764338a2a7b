"""Tolerant decoding of the model's JSON reply into records.

The model is asked for JSON but is not bound to one shape: a page with a
single receipt usually comes back as an object, a page with several as an
array. Both are accepted; anything else is a parse error.
"""
import json
import logging
from typing import Any, List, Optional

from pydantic import ValidationError

from .exceptions import ResponseParseError
from .models import ExtractedRecord

logger = logging.getLogger(__name__)


def _strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if the model added one."""
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()


def _load_json(text: str) -> tuple[bool, Any, Optional[Exception]]:
    """Decode JSON, falling back to the outermost object/array in the text."""
    try:
        return True, json.loads(text), None
    except json.JSONDecodeError as first_err:
        starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
        end = max(text.rfind("}"), text.rfind("]"))
        if not starts or end <= min(starts):
            return False, None, first_err
        try:
            return True, json.loads(text[min(starts):end + 1]), None
        except json.JSONDecodeError:
            return False, None, first_err


def _as_record(raw: Any) -> Optional[ExtractedRecord]:
    if not isinstance(raw, dict):
        return None
    try:
        return ExtractedRecord.model_validate(raw)
    except ValidationError as exc:
        logger.debug(f"[PARSE] object rejected: {exc.errors()[:1]}")
        return None


def _as_record_list(raw: Any) -> Optional[List[ExtractedRecord]]:
    if not isinstance(raw, list):
        return None
    records = []
    for item in raw:
        record = _as_record(item)
        if record is None:
            return None
        records.append(record)
    return records


def parse_records(response_text: str) -> List[ExtractedRecord]:
    """Parse the raw reply as one record, else a list of records.

    Returns:
        Zero or more records; a single object yields a one-element list

    Raises:
        ResponseParseError: If the text is not JSON or matches neither shape
    """
    text = _strip_code_fence(response_text or "")
    ok, raw, error = _load_json(text)
    if not ok:
        raise ResponseParseError(response_text or "", error)

    record = _as_record(raw)
    if record is not None:
        return [record]

    records = _as_record_list(raw)
    if records is not None:
        return records

    raise ResponseParseError(response_text, ValueError("expected a record object or an array of records"))
