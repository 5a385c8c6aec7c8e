#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Иерархия исключений пайплайна.

Ошибки загрузки (IngestError) жёсткие, уходят вызывающему как есть.
Ошибки генерации (BackendError и наследники) никогда не покидают движок:
он превращает их в фиксированный текст-заглушку.
"""


class RagError(Exception):
    """Базовое исключение пакета."""


class ValidationError(RagError):
    """Пустое/некорректное входное поле. Возникает до любых обращений к хранилищу."""


class StoreError(RagError):
    """Векторное хранилище недоступно или отклонило вызов."""


class SourceLoadError(RagError):
    """Источник записей (CSV) не найден или не читается."""


class IngestError(RagError):
    """Загрузка записей в хранилище не удалась; данные не загружены."""


class BackendError(RagError):
    """Бэкенд генерации недоступен или вернул ошибку."""


class UnexpectedResponseError(BackendError):
    """Внешний LLM ответил JSON-ом без ключа ``response``."""
