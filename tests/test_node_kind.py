import pytest

# pylint: disable=protected-access
# pyright: reportPrivateUsage=false

from treemapper.typeutils.node_kind import node_kind, _format_kind_names


def test_format_kind_names_single() -> None:
    assert _format_kind_names("string") == "string"


def test_format_kind_names_tuple() -> None:
    assert _format_kind_names(("number", "integer")) == "number or integer"
    assert _format_kind_names(("boolean",)) == "boolean"


@pytest.mark.parametrize("value, kind", [
    ({}, "object"),
    ({"a": 1}, "object"),
    ([], "array"),
    ((1, 2), "array"),
    ("", "string"),
    (0, "integer"),
    (-12, "integer"),
    (1.0, "number"),
    (float("inf"), "number"),
    (True, "boolean"),
    (False, "boolean"),
    (None, "null"),
])
def test_node_kind(value: object, kind: str) -> None:
    assert node_kind(value) == kind


def test_node_kind_failure() -> None:
    with pytest.raises(TypeError, match="bytes is not a tree value"):
        node_kind(b"raw")

    with pytest.raises(TypeError, match="set is not a tree value"):
        node_kind({1, 2})
