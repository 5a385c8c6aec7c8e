#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import logging
from pathlib import Path
from typing import Iterable, Union

from .errors import IngestError, SourceLoadError, StoreError
from .records import RawRow, load_csv, normalize_rows
from .vectorstore import VectorStore

logger = logging.getLogger(__name__)


class RecordIndexer:
    """Индексатор записей показателей в векторное хранилище.

    1) Нормализует строки, отбрасывая невалидные
    2) Одним вызовом отправляет единицы в хранилище (эмбеддинги считает хранилище)
    3) Возвращает число сохранённых единиц
    """
    def __init__(self, store: VectorStore, source_tag: str) -> None:
        self._store = store
        self._source_tag = source_tag

    def ingest(self, rows: Iterable[RawRow]) -> int:
        """Загружает строки в хранилище.

        Вызов хранилища атомарен: при его ошибке поднимается IngestError,
        частичная запись не пытается восстанавливаться.
        """
        units, rejected = normalize_rows(rows, self._source_tag)
        if not units:
            logger.warning("No valid rows to ingest (%d rejected)", rejected)
            return 0
        try:
            self._store.add(units)
        except StoreError as exc:
            logger.error("Vector store rejected %d units: %s", len(units), exc)
            raise IngestError(f"Failed to store {len(units)} units: {exc}") from exc
        logger.info("Ingested %d units (%d rows rejected)", len(units), rejected)
        return len(units)

    def ingest_source(self, source: Union[str, Path]) -> int:
        """Читает CSV-источник и загружает его строки."""
        try:
            records = load_csv(source)
        except SourceLoadError as exc:
            raise IngestError(str(exc)) from exc
        return self.ingest(records)
