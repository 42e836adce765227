# Folder: qport-core/agent/response_parser.py
#
# Pulls the classification object out of whatever the model sent back.
# Candidates, in order: the whole text, each ``` fenced block, the
# outermost { } span. The first one that decodes to an object wins.

import json
import re
import logging
from typing import Iterator

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def parse_model_response(raw_response: str, step_name: str) -> dict:
    """
    Grounded answers often wrap the JSON in a sentence or a code fence.

    Raises ValueError when no candidate decodes to a JSON object. The
    error carries no status code, so the classifier retries it.
    """
    text = (raw_response or "").strip()
    logger.debug(f"[{step_name}] Raw response length: {len(text)}")
    if not text:
        raise ValueError(f"Empty model response for {step_name}")

    for candidate in _candidates(text):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
        logger.debug(f"[{step_name}] Skipping non-object JSON ({type(value).__name__})")

    logger.error(f"[{step_name}] Failed to parse. Raw start: {text[:300]}")
    raise ValueError(
        f"Could not parse model response for {step_name}. Raw: {text[:200]}"
    )


def _candidates(text: str) -> Iterator[str]:
    yield text
    for block in FENCE_PATTERN.findall(text):
        yield block.strip()
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        yield text[start:end + 1]
