from typing import Any, Iterable

# Kind names used in diagnostics. "integer" and "number" are both JSON numbers;
# they are kept apart so integer fields can reject fractional values.
OBJECT = "object"
ARRAY = "array"
STRING = "string"
INTEGER = "integer"
NUMBER = "number"
BOOLEAN = "boolean"
NULL = "null"


def _format_kind_names(kinds: str | Iterable[str]) -> str:
    """
    Helper to format kind names nicely for error messages.
    """
    if isinstance(kinds, str):
        return kinds
    return " or ".join(kinds)


def node_kind(value: Any) -> str:
    """
    Classify a tree value by its JSON variant.

    `bool` is checked before `int` since it is an `int` subclass in Python.
    Tuples are reported as arrays because `json` renders them that way.

    Args:
        value (Any):
            The tree value to classify.

    Returns:
        str:
            One of `object`, `array`, `string`, `integer`, `number`, `boolean`
            or `null`.

    Raises:
        TypeError:
            If the value is not a JSON-like tree value.

    Example:
        >>> node_kind({"a": 1})
        'object'

        >>> node_kind(True)
        'boolean'

        >>> node_kind(3.5)
        'number'
    """
    if value is None:
        return NULL
    if isinstance(value, bool):
        return BOOLEAN
    if isinstance(value, int):
        return INTEGER
    if isinstance(value, float):
        return NUMBER
    if isinstance(value, str):
        return STRING
    if isinstance(value, dict):
        return OBJECT
    if isinstance(value, (list, tuple)):
        return ARRAY
    raise TypeError(f"node_kind failed: {type(value).__name__} is not a tree value")
