"""Coercion of capability outputs into workflow models."""

import json
import re
from typing import (
    Any,
    Type,
    TypeVar,
)

from pydantic import BaseModel

ModelT = TypeVar("ModelT", bound=BaseModel)

# A fence must open and close at the start of a line; inline backticks in prose do not count.
_FENCED_BLOCK = re.compile(r"^```(?:json)?[ \t]*\n(.*?)^```", re.MULTILINE | re.DOTALL)


def extract_json(content: str) -> Any:
    """Extract and parse JSON from model text, handling markdown code blocks.

    The first fenced block that parses wins; text without a parseable
    block is parsed as a whole.

    Raises:
        ValueError: If no JSON document could be parsed.
    """
    for match in _FENCED_BLOCK.finditer(content):
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            continue

    try:
        return json.loads(content.strip())
    except json.JSONDecodeError as e:
        raise ValueError(f"Failed to parse JSON output: {e}") from e


def coerce_output(value: Any, shape: Type[ModelT]) -> ModelT:
    """Convert a capability return value into ``shape``.

    Accepts an instance of ``shape``, any other pydantic model with a
    compatible dump, a mapping, or JSON text.

    Raises:
        ValueError: If the value does not conform to ``shape``
            (pydantic's ``ValidationError`` is a ``ValueError``).
    """
    if isinstance(value, shape):
        return value
    if isinstance(value, BaseModel):
        value = value.model_dump()
    elif isinstance(value, (str, bytes)):
        value = extract_json(value.decode() if isinstance(value, bytes) else value)
    if value is None:
        raise ValueError(f"Empty output, expected {shape.__name__}")
    return shape.model_validate(value)
