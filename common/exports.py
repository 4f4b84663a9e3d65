from typing import Iterator

from attrs import define, field

from common.errors import DuplicateExportError, NotFoundError


@define(slots=True)
class ExportRegistry:
    """Named identifiers shared between units of one synthesis run.

    A producing unit ``put``s an identifier (usually a CDK token such as a
    VPC or subnet id) right after creating it; consuming units ``get`` it
    by name instead of holding a reference to the producing stack object.
    One registry is created per run and handed to every unit constructor.

    Each name has a single writer: exporting a name twice raises
    DuplicateExportError, and reading a name nobody exported yet raises
    NotFoundError, which means a consumer was declared before its producer.
    """

    _values: dict[str, str] = field(factory=dict, init=False)
    _reads: dict[str, int] = field(factory=dict, init=False)

    def put(self, name: str, value: str) -> None:
        if name in self._values:
            raise DuplicateExportError(f"'{name}' has already been exported")
        self._values[name] = value

    def get(self, name: str) -> str:
        if name not in self._values:
            raise NotFoundError(
                f"'{name}' has not been exported; declare its producing unit first"
            )
        self._reads[name] = self._reads.get(name, 0) + 1
        return self._values[name]

    def read_count(self, name: str) -> int:
        return self._reads.get(name, 0)

    def names(self) -> list[str]:
        """Exported names in the order they were written."""
        return list(self._values)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)
