from typing import Any
import pytest
import structlog
from structlog.testing import capture_logs
from treemapper.demo import Person, sample_person
from treemapper.serialization.error_reporter import log_field_error, set_error_reporter
from treemapper.serialization.errors import FieldError, MissingFieldError, TypeMismatchError
from treemapper.serialization.tree_mapping import from_tree


@pytest.fixture(autouse=True)
def _restore_reporter():
    previous = set_error_reporter(log_field_error)
    yield
    set_error_reporter(previous)


@pytest.fixture(name="broken_tree")
def broken_tree_impl() -> dict[str, Any]:
    tree = sample_person().serialize_to_tree()
    del tree["job"]["car"]["make"]
    return tree


def test_default_reporter_logs_once(broken_tree: dict[str, Any]):
    with capture_logs() as logs:
        with pytest.raises(MissingFieldError):
            from_tree(broken_tree, Person())

    assert logs == [{
        "event": "tree_field_error",
        "log_level": "error",
        "field_path": "job.car.make",
        "reason": "missing field 'make' in Car",
        "error": "MissingFieldError",
    }]


def test_default_reporter_on_construct():
    tree = sample_person().serialize_to_tree()
    tree["age"] = "old"

    with capture_logs() as logs:
        with pytest.raises(TypeMismatchError):
            Person.deserialize_from_tree(tree)

    assert len(logs) == 1
    assert logs[0]["field_path"] == "age"
    assert logs[0]["reason"] == "expected integer, got string"
    assert logs[0]["error"] == "TypeMismatchError"


def test_success_is_silent():
    with capture_logs() as logs:
        from_tree(sample_person().serialize_to_tree(), Person())

    assert not logs


def test_custom_reporter_receives_raised_error(broken_tree: dict[str, Any]):
    seen: list[FieldError] = []
    set_error_reporter(seen.append)

    with pytest.raises(MissingFieldError) as exc_info:
        Person().deserialize_into(broken_tree)

    assert seen == [exc_info.value]
    assert seen[0].field_path == "job.car.make"


def test_reporter_can_be_disabled(broken_tree: dict[str, Any]):
    previous = set_error_reporter(None)
    assert previous is log_field_error

    with capture_logs() as logs:
        with pytest.raises(MissingFieldError):
            from_tree(broken_tree, Person())

    assert not logs


def test_set_error_reporter_returns_previous():
    def reporter(error: FieldError) -> None:  # pragma: no cover
        pass

    assert set_error_reporter(reporter) is log_field_error
    assert set_error_reporter(None) is reporter


def test_unconfigured_default_reporter_writes_to_stderr(
    broken_tree: dict[str, Any], capsys: pytest.CaptureFixture[str]
):
    structlog.reset_defaults()

    with pytest.raises(MissingFieldError):
        from_tree(broken_tree, Person())

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "tree_field_error" in captured.err
    assert "job.car.make" in captured.err
    assert captured.err.count("\n") == 1
