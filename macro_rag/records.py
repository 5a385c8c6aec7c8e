#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Записи показателей и их нормализация в индексируемые единицы."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Tuple, Union

from .errors import SourceLoadError

logger = logging.getLogger(__name__)

NOT_REPORTED = "-"

# Колонки CSV -> поля IndicatorRecord
CSV_COLUMNS = {
    "Indicators": "name",
    "Units": "unit",
    "Year": "period",
    "Value": "value",
}


@dataclass(frozen=True)
class IndicatorRecord:
    """Одна строка таблицы показателей."""
    name: str
    unit: str
    period: str
    value: str

    @property
    def is_valid(self) -> bool:
        name = (self.name or "").strip()
        value = (self.value or "").strip()
        return bool(name) and bool(value) and value != NOT_REPORTED

    @classmethod
    def from_row(cls, row: Mapping[str, Optional[str]]) -> "IndicatorRecord":
        """Строит запись из словаря CSV (``Indicators``/``Units``/``Year``/``Value``)."""
        values = {attr: (row.get(column) or "") for column, attr in CSV_COLUMNS.items()}
        return cls(**values)


@dataclass(frozen=True)
class IndexableUnit:
    """Единица индексации: предложение-описание + метаданные (только строки)."""
    content: str
    metadata: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))


RawRow = Union[IndicatorRecord, Mapping[str, Optional[str]]]


def render_content(record: IndicatorRecord) -> str:
    return f"In {record.period}, {record.name} was {record.value} {record.unit}"


def normalize(row: RawRow, source: str) -> Optional[IndexableUnit]:
    """Нормализует строку в IndexableUnit; невалидная строка -> None.

    Проверка валидности идёт до рендеринга, побочных эффектов нет.
    """
    record = row if isinstance(row, IndicatorRecord) else IndicatorRecord.from_row(row)
    if not record.is_valid:
        return None
    return IndexableUnit(
        content=render_content(record),
        metadata={
            "indicator": record.name,
            "units": record.unit,
            "year": record.period,
            "value": record.value,
            "source": source,
        },
    )


def normalize_rows(rows: Iterable[RawRow], source: str) -> Tuple[List[IndexableUnit], int]:
    """Нормализует пачку строк. Возвращает (единицы, число отброшенных)."""
    units: List[IndexableUnit] = []
    rejected = 0
    for row in rows:
        unit = normalize(row, source)
        if unit is None:
            rejected += 1
            continue
        units.append(unit)
    if rejected:
        logger.warning("Rejected %d invalid rows (empty indicator or unreported value)", rejected)
    logger.info("Normalized %d rows into indexable units", len(units))
    return units, rejected


def load_csv(path: Union[str, Path]) -> List[IndicatorRecord]:
    """Читает CSV с заголовком ``Indicators,Units,Year,Value``."""
    p = Path(path)
    if not p.is_file():
        raise SourceLoadError(f"CSV source not found: {p}")

    try:
        with p.open(encoding="utf-8-sig", newline="") as fh:
            reader = csv.DictReader(fh, skipinitialspace=True)
            header = [h.strip() for h in (reader.fieldnames or [])]
            missing = [c for c in CSV_COLUMNS if c not in header]
            if missing:
                raise SourceLoadError(f"CSV source {p} is missing columns: {', '.join(missing)}")
            reader.fieldnames = header
            records = [IndicatorRecord.from_row(row) for row in reader]
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise SourceLoadError(f"Failed to read CSV source {p}: {exc}") from exc

    logger.info("Loaded %d indicator rows from %s", len(records), p)
    return records
