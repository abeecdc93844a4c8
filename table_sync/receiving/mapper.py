"""Translation of wire-format rows into storage rows."""

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Tuple

from table_sync.receiving.target_spec import TargetSpec
from table_sync.types import Row


@dataclass(frozen=True)
class MappedRow:
    """
    A wire row after renaming: the lookup key and the remaining columns.

    missing_keys lists target keys absent from the incoming row; the handler
    treats a non-empty value as a handling error.
    """
    key: Row
    attributes: Row
    missing_keys: Tuple[str, ...] = ()

    @property
    def columns(self) -> Row:
        return {**self.key, **self.attributes}


class AttributeMapper:
    """
    Renames wire fields to storage columns using a TargetSpec.

    Values are never changed. Fields without an override keep their name,
    fields with no storage column are dropped.
    """

    @staticmethod
    def map_row(row: Mapping[Any, Any], spec: TargetSpec) -> MappedRow:
        overrides = spec.mapping_overrides
        renamed: Row = {}
        for name, value in row.items():
            if str(name) not in overrides:
                renamed[str(name)] = value
        for name, value in row.items():
            if str(name) in overrides:
                renamed[overrides[str(name)]] = value

        for column, value in spec.default_values.items():
            renamed.setdefault(column, value)

        allowed = spec.allowed_columns
        key = {column: renamed[column] for column in spec.target_keys if column in renamed}
        missing = tuple(column for column in spec.target_keys if column not in renamed)
        attributes = {
            column: value for column, value in renamed.items()
            if column in allowed and column not in spec.target_keys
        }
        return MappedRow(key=key, attributes=attributes, missing_keys=missing)

    @staticmethod
    def map_rows(rows: Iterable[Mapping[Any, Any]], spec: TargetSpec) -> List[MappedRow]:
        return [AttributeMapper.map_row(row, spec) for row in rows]
