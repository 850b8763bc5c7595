from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional

from makemyday.errors import EmptyResponseError, ResponseParseError

logger = logging.getLogger(__name__)

# Greedy on purpose: first "[" through last "]". Prose holding another
# bracketed list around the payload will defeat it. The whole reply is only
# tried when it holds no bracket span at all.
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


def _try_loads(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def parse_json_array(content: Optional[str]) -> List[Any]:
    """Pull the JSON array out of a model reply that may wrap it in prose or fences."""
    if not content:
        raise EmptyResponseError("AI returned an empty response")

    result: Optional[Any] = None
    match = _ARRAY_RE.search(content)
    if match:
        result = _try_loads(match.group(0))
    else:
        result = _try_loads(content)

    if result is None:
        logger.error(f"Failed to parse AI response: {content}")
        raise ResponseParseError("Could not parse AI response")
    if not isinstance(result, list):
        logger.error(f"AI response is not a JSON array: {content}")
        raise ResponseParseError("AI response is not a JSON array")
    return result
