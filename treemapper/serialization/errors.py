from __future__ import annotations


class FieldError(Exception):
    """
    Base class for failures raised while deserializing a tree into a mappable type.

    Every error carries the path of field names leading to the offending field. The
    path starts with the innermost field only and grows as the error unwinds through
    nested composite fields, so the caller ends up with the full dotted path
    (e.g. `job.car.make`).

    Attributes:
        reason (str):
            Human-readable description of what went wrong at the field.

        path (tuple[str, ...]):
            Field names from the outermost type down to the offending field.
            Empty when the failure concerns the root node itself.
    """

    reason: str
    path: tuple[str, ...]

    def __init__(self, reason: str, path: tuple[str, ...] = ()):
        super().__init__(reason)
        self.reason = reason
        self.path = path

    @property
    def field_path(self) -> str:
        """
        The dot-joined field path, or an empty string for the root node.
        """
        return ".".join(self.path)

    def prefixed(self, name: str) -> FieldError:
        """
        Prepend an enclosing field name to the path and return the same error.

        Args:
            name (str):
                Name of the composite field the error is unwinding through.

        Returns:
            FieldError:
                `self`, so it can be re-raised directly.
        """
        self.path = (name,) + self.path
        return self

    def __str__(self) -> str:
        if not self.path:
            return self.reason
        return f"{self.field_path}: {self.reason}"


class ShapeError(FieldError, TypeError):
    """
    The node presented for a composite type is not an object.

    Attributes:
        type_name (str):
            Name of the composite type that was expected.

        actual_kind (str):
            Kind of the node that was found instead.
    """

    type_name: str
    actual_kind: str

    def __init__(self, type_name: str, actual_kind: str, path: tuple[str, ...] = ()):
        super().__init__(f"expected object for {type_name}, got {actual_kind}", path)
        self.type_name = type_name
        self.actual_kind = actual_kind


class MissingFieldError(FieldError, LookupError):
    """
    An expected field name is absent from the object node.

    Attributes:
        field_name (str):
            The missing field.

        type_name (str):
            Name of the composite type owning the field.
    """

    field_name: str
    type_name: str

    def __init__(self, field_name: str, type_name: str):
        super().__init__(f"missing field '{field_name}' in {type_name}", (field_name,))
        self.field_name = field_name
        self.type_name = type_name


class TypeMismatchError(FieldError, TypeError):
    """
    A leaf node's variant does not match the kind declared for its field.

    Attributes:
        field_name (str):
            The offending field.

        expected_kind (str):
            Kind(s) the field accepts, formatted for display.

        actual_kind (str):
            Kind of the node that was found.
    """

    field_name: str
    expected_kind: str
    actual_kind: str

    def __init__(self, field_name: str, expected_kind: str, actual_kind: str):
        super().__init__(f"expected {expected_kind}, got {actual_kind}", (field_name,))
        self.field_name = field_name
        self.expected_kind = expected_kind
        self.actual_kind = actual_kind
