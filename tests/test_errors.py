from treemapper.serialization.errors import (
    FieldError,
    MissingFieldError,
    ShapeError,
    TypeMismatchError,
)


def test_prefixed_accumulates_path() -> None:
    err = MissingFieldError("make", "Car")
    assert err.path == ("make",)

    assert err.prefixed("car") is err
    err.prefixed("job")

    assert err.path == ("job", "car", "make")
    assert err.field_path == "job.car.make"
    assert str(err) == "job.car.make: missing field 'make' in Car"
    # payload is unchanged by prefixing
    assert err.field_name == "make"
    assert err.reason == "missing field 'make' in Car"


def test_root_error_has_no_path() -> None:
    err = ShapeError("Person", "array")
    assert err.field_path == ""
    assert str(err) == "expected object for Person, got array"


def test_type_mismatch_message() -> None:
    err = TypeMismatchError("age", "integer", "string")
    assert str(err) == "age: expected integer, got string"


def test_hierarchy() -> None:
    assert issubclass(ShapeError, FieldError)
    assert issubclass(ShapeError, TypeError)
    assert issubclass(TypeMismatchError, FieldError)
    assert issubclass(TypeMismatchError, TypeError)
    assert issubclass(MissingFieldError, FieldError)
    assert issubclass(MissingFieldError, LookupError)
    assert not issubclass(MissingFieldError, KeyError)
