"""Domain models for multi-source data quality comparison.

Four parallel sources (register, summary, reported, correction) capture the
same facts through different channels. A fact is identified by its
``ComparisonKey``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Sequence

DEFAULT_CATEGORY_OPTION_COMBO = "default"
KEY_SEPARATOR = "|"


class SourceName(str, Enum):
    REGISTER = "register"
    SUMMARY = "summary"
    REPORTED = "reported"
    CORRECTION = "correction"

    @property
    def dataset_key(self) -> str:
        """Key of the source inside an assessment's ``localDatasets``."""
        if self is SourceName.CORRECTION:
            return "corrections"
        return self.value

    @classmethod
    def parse(cls, value: SourceName | str) -> SourceName:
        if isinstance(value, SourceName):
            return value
        text = str(value).strip().lower()
        for source in cls:
            if text in (source.value, source.dataset_key):
                return source
        raise ValueError(f"Unknown data source: {value!r}")


def coerce_value(value: object) -> Decimal:
    """Coerce a raw value to a finite ``Decimal``; anything unusable becomes 0."""
    if value is None:
        return Decimal("0")
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip()
        if not text:
            return Decimal("0")
        try:
            result = Decimal(text)
        except InvalidOperation:
            return Decimal("0")
    if not result.is_finite():
        return Decimal("0")
    return result


@dataclass(frozen=True)
class ComparisonKey:
    """Identity of one comparable fact across the four sources."""

    data_element: str
    category_option_combo: str
    org_unit: str
    period: str

    def serialize(self) -> str:
        return KEY_SEPARATOR.join(
            (self.data_element, self.category_option_combo, self.org_unit, self.period)
        )

    @classmethod
    def deserialize(cls, text: str) -> ComparisonKey:
        parts = text.split(KEY_SEPARATOR)
        if len(parts) != 4:
            raise ValueError(f"Comparison key must have 4 parts: {text!r}")
        return cls(*parts)

    def __str__(self) -> str:
        return self.serialize()


@dataclass(frozen=True)
class DataSourceRow:
    data_element: str
    category_option_combo: str
    org_unit: str
    period: str
    value: Any = None

    @property
    def key(self) -> ComparisonKey:
        return ComparisonKey(
            data_element=str(self.data_element),
            category_option_combo=str(self.category_option_combo),
            org_unit=str(self.org_unit),
            period=str(self.period),
        )

    @property
    def numeric_value(self) -> Decimal:
        return coerce_value(self.value)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> DataSourceRow:
        combo = mapping.get("categoryOptionCombo")
        return cls(
            data_element=str(mapping.get("dataElement", "")),
            category_option_combo=str(combo) if combo not in (None, "") else DEFAULT_CATEGORY_OPTION_COMBO,
            org_unit=str(mapping.get("orgUnit", "")),
            period=str(mapping.get("period", "")),
            value=mapping.get("value"),
        )

    def to_dict(self) -> dict[str, Any]:
        value = self.value
        if isinstance(value, Decimal):
            value = float(value) if value != value.to_integral_value() else int(value)
        return {
            "dataElement": self.data_element,
            "categoryOptionCombo": self.category_option_combo,
            "orgUnit": self.org_unit,
            "period": self.period,
            "value": value,
        }


@dataclass(frozen=True)
class ComparisonSources:
    register: Sequence[DataSourceRow] = field(default_factory=tuple)
    summary: Sequence[DataSourceRow] = field(default_factory=tuple)
    reported: Sequence[DataSourceRow] = field(default_factory=tuple)
    correction: Sequence[DataSourceRow] = field(default_factory=tuple)

    def rows_for(self, source: SourceName) -> Sequence[DataSourceRow]:
        return getattr(self, source.value)

    def filtered(self, period: str | None = None, org_unit: str | None = None) -> ComparisonSources:
        def keep(row: DataSourceRow) -> bool:
            if period is not None and str(row.period) != period:
                return False
            if org_unit is not None and str(row.org_unit) != org_unit:
                return False
            return True

        return ComparisonSources(
            **{source.value: tuple(row for row in self.rows_for(source) if keep(row)) for source in SourceName}
        )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Sequence[Any]]) -> ComparisonSources:
        collected: dict[str, tuple[DataSourceRow, ...]] = {}
        for raw_name, rows in mapping.items():
            source = SourceName.parse(raw_name)
            collected[source.value] = tuple(
                row if isinstance(row, DataSourceRow) else DataSourceRow.from_mapping(row) for row in rows or ()
            )
        return cls(**collected)
