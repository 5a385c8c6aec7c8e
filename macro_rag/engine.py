#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import enum
import logging
from dataclasses import dataclass

from .context import assemble
from .errors import RagError, UnexpectedResponseError
from .llm import UNEXPECTED_FORMAT_FALLBACK, GenerationBackend
from .retriever import Retriever, SearchQuery

logger = logging.getLogger(__name__)

NO_CONTEXT_FALLBACK = (
    "I couldn't find any relevant macroeconomic data for your query. "
    "Please try rephrasing your question or check if the data has been loaded."
)


class ResultKind(str, enum.Enum):
    ANSWER = "answer"
    NO_CONTEXT = "no_context"
    ERROR = "error"
    UNEXPECTED_FORMAT = "unexpected_format"


@dataclass(frozen=True)
class GenerationResult:
    """Итог генерации. ``text`` — то, что видит пользователь; ``kind`` — для строгих потребителей."""
    text: str
    kind: ResultKind = ResultKind.ANSWER

    @property
    def is_fallback(self) -> bool:
        return self.kind is not ResultKind.ANSWER

    def __str__(self) -> str:
        return self.text


class RagEngine:
    """Движок RAG: извлечение -> сборка контекста -> генерация выбранным бэкендом.

    - пустое извлечение: заглушка no-context, бэкенд не вызывается
    - любая ошибка при извлечении: заглушка ошибки бэкенда
    - ошибка бэкенда: его заглушка; неожиданный формат ответа — отдельная заглушка
    ``generate`` никогда не поднимает исключения и не делает повторов.
    """
    def __init__(self, retriever: Retriever) -> None:
        self._retriever = retriever

    def _context_query(self, user_query: str) -> SearchQuery:
        cfg = self._retriever.config
        return SearchQuery(text=user_query, top_k=cfg.context_top_k, similarity_threshold=cfg.context_threshold)

    def generate(self, user_query: str, backend: GenerationBackend) -> GenerationResult:
        logger.info("Processing %s RAG query: %s", backend.name, user_query)

        try:
            matches = self._retriever.search(self._context_query(user_query))
        except RagError as exc:
            logger.error("Retrieval failed for %s query: %s", backend.name, exc)
            return GenerationResult(backend.error_fallback, ResultKind.ERROR)
        except Exception:
            logger.exception("Unexpected error retrieving context for %s query", backend.name)
            return GenerationResult(backend.error_fallback, ResultKind.ERROR)

        if not matches:
            logger.warning("No relevant documents found for query: %s", user_query)
            return GenerationResult(NO_CONTEXT_FALLBACK, ResultKind.NO_CONTEXT)

        logger.info("Found %d relevant documents", len(matches))
        context = assemble(matches)
        logger.debug("Prepared context for %s backend: %s", backend.name, context)

        try:
            text = backend.generate(user_query, context)
        except UnexpectedResponseError as exc:
            logger.warning("%s", exc)
            return GenerationResult(UNEXPECTED_FORMAT_FALLBACK, ResultKind.UNEXPECTED_FORMAT)
        except Exception:
            logger.exception("Error generating response with %s backend", backend.name)
            return GenerationResult(backend.error_fallback, ResultKind.ERROR)

        logger.info("Successfully generated response with %s backend", backend.name)
        return GenerationResult(text, ResultKind.ANSWER)
