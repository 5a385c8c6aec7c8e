#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Поиск по векторному хранилищу: открытый и с фильтром по году."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from .config import RetrievalConfig
from .errors import ValidationError
from .vectorstore import Match, MetadataEquals, VectorStore

logger = logging.getLogger(__name__)

PERIOD_FIELD = "year"


@dataclass(frozen=True)
class SearchQuery:
    text: str
    top_k: int = 5
    similarity_threshold: float = 0.75
    metadata_filter: Optional[MetadataEquals] = None


def parse_top_k(raw: Any, default: int) -> int:
    """Разбирает top_k из недоверенного ввода. Без клиппинга: некорректное значение даёт ошибку."""
    if raw is None or raw == "":
        return default
    if isinstance(raw, bool):
        raise ValidationError(f"topK must be a positive integer, got {raw!r}")
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ValidationError(f"topK must be a positive integer, got {raw!r}")
        raw = int(raw)
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise ValidationError(f"topK must be a positive integer, got {raw!r}") from None
    if value <= 0:
        raise ValidationError(f"topK must be a positive integer, got {value}")
    return value


def parse_threshold(raw: Any, default: float) -> float:
    """Разбирает порог сходства; допустимый диапазон [0, 1]."""
    if raw is None or raw == "":
        return default
    if isinstance(raw, bool):
        raise ValidationError(f"similarityThreshold must be a number in [0, 1], got {raw!r}")
    try:
        value = float(str(raw).strip())
    except ValueError:
        raise ValidationError(f"similarityThreshold must be a number in [0, 1], got {raw!r}") from None
    # NaN не проходит сравнение и отсекается здесь же
    if not 0.0 <= value <= 1.0:
        raise ValidationError(f"similarityThreshold must be a number in [0, 1], got {value}")
    return value


class Retriever:
    """Тонкий слой над VectorStore: валидирует запрос и пробрасывает параметры.

    Ранжирование, top_k и порог применяет хранилище; здесь результаты
    не пересчитываются и не пересортировываются. Ошибки хранилища (StoreError)
    уходят вызывающему.
    """

    def __init__(self, store: VectorStore, cfg: Optional[RetrievalConfig] = None) -> None:
        self._store = store
        self._cfg = cfg or RetrievalConfig()

    @property
    def config(self) -> RetrievalConfig:
        return self._cfg

    def search(self, query: SearchQuery) -> List[Match]:
        if not query.text or not query.text.strip():
            raise ValidationError("Query cannot be empty")
        if query.top_k <= 0:
            raise ValidationError(f"topK must be a positive integer, got {query.top_k}")
        if not 0.0 <= query.similarity_threshold <= 1.0:
            raise ValidationError(f"similarityThreshold must be in [0, 1], got {query.similarity_threshold}")

        matches = self._store.similarity_search(
            query.text,
            top_k=query.top_k,
            threshold=query.similarity_threshold,
            metadata_filter=query.metadata_filter,
        )
        if query.metadata_filter is not None:
            f = query.metadata_filter
            logger.info("Found %d matches for %r where %s == %r", len(matches), query.text, f.field, f.value)
        else:
            logger.info("Found %d matches for %r", len(matches), query.text)
        return list(matches)

    def search_text(self, text: str, top_k: Any = None, threshold: Any = None) -> List[Match]:
        """Открытый поиск; top_k и threshold могут прийти строками из запроса."""
        if not text or not text.strip():
            raise ValidationError("Query cannot be empty")
        query = SearchQuery(
            text=text,
            top_k=parse_top_k(top_k, self._cfg.top_k),
            similarity_threshold=parse_threshold(threshold, self._cfg.search_threshold),
        )
        return self.search(query)

    def search_filtered(self, text: str, period: str, top_k: Any = None) -> List[Match]:
        """Поиск с точным совпадением метаданных ``year`` == period."""
        if not text or not text.strip():
            raise ValidationError("Query cannot be empty")
        if not period or not period.strip():
            raise ValidationError("Year cannot be empty")
        query = SearchQuery(
            text=text,
            top_k=parse_top_k(top_k, self._cfg.top_k),
            similarity_threshold=self._cfg.filtered_threshold,
            metadata_filter=MetadataEquals(field=PERIOD_FIELD, value=period.strip()),
        )
        return self.search(query)
