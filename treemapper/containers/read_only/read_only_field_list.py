from __future__ import annotations
from collections.abc import Sequence
from typing import TYPE_CHECKING, Iterator, overload

if TYPE_CHECKING:
    from treemapper.serialization.tree_mapping import FieldDescriptor


class ReadOnlyFieldList(Sequence["FieldDescriptor"]):
    """
    A read-only, ordered view over the compiled field descriptors of a mappable type.

    The list is built once when `@mappable` runs and is shared by every instance of
    the type, so it must not be mutated afterwards. Order is the dataclass declaration
    order, which is also the order used when walking fields during (de)serialization.

    Attributes:
        _data (tuple[FieldDescriptor, ...]):
            The underlying descriptors.

        _by_name (dict[str, FieldDescriptor]):
            Name index over `_data`.
    """

    _data: tuple[FieldDescriptor, ...]
    _by_name: dict[str, FieldDescriptor]

    def __init__(self, data: Sequence[FieldDescriptor]):
        self._data = tuple(data)
        self._by_name = {}
        for descriptor in self._data:
            if descriptor.name in self._by_name:
                raise ValueError(f"Duplicate field name '{descriptor.name}'")
            self._by_name[descriptor.name] = descriptor

    @overload
    def __getitem__(self, index: int) -> FieldDescriptor: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[FieldDescriptor]: ...

    def __getitem__(self, index: int | slice) -> FieldDescriptor | Sequence[FieldDescriptor]:
        return self._data[index]

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[FieldDescriptor]:
        return iter(self._data)

    def __contains__(self, value: object) -> bool:
        if isinstance(value, str):
            return value in self._by_name
        return value in self._data

    def names(self) -> tuple[str, ...]:
        """
        Returns the field names in declaration order.

        Returns:
            tuple[str, ...]:
                The names of all mapped fields.
        """
        return tuple(descriptor.name for descriptor in self._data)

    def get(self, name: str) -> FieldDescriptor:
        """
        Returns the descriptor for the given field name.

        Args:
            name (str):
                The field name to look up.

        Returns:
            FieldDescriptor:
                The descriptor registered under `name`.

        Raises:
            KeyError:
                If no mapped field has that name.
        """
        return self._by_name[name]

    def __repr__(self) -> str:
        return f"ReadOnlyFieldList({list(self.names())!r})"
