#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Сборка контекста из совпадений и системные инструкции для LLM."""

from typing import Sequence

from .vectorstore import Match

LOCAL_SYSTEM_TEMPLATE = """\
You are an AI assistant specialized in analyzing macroeconomic data.
You will be provided with relevant economic indicators and data points to answer user questions.

Instructions:
1. Use only the provided context to answer questions
2. If the context doesn't contain enough information, say so clearly
3. Provide specific numbers, years, and indicators when available
4. Format your response in a clear, professional manner
5. If asked about trends, compare multiple data points from the context

Context Information:
{context}
"""

EXTERNAL_SYSTEM_MESSAGE = (
    "You are an AI assistant specialized in analyzing macroeconomic data. "
    "Use the provided context to answer the user's question."
)

# (ключ метаданных, подпись) — порядок фиксирован
SUMMARY_FIELDS = (
    ("indicator", "Indicator"),
    ("units", "Units"),
    ("year", "Year"),
)

BLOCK_SEPARATOR = "\n\n"


def summarize_metadata(match: Match) -> str:
    """Краткая сводка метаданных в скобках; отсутствующие поля пропускаются."""
    meta = match.metadata or {}
    parts = [f"{label}: {meta[key]}" for key, label in SUMMARY_FIELDS if key in meta]
    return "(" + ", ".join(parts) + ")"


def assemble(matches: Sequence[Match]) -> str:
    """Склеивает совпадения в один текст, сохраняя порядок ретривера.

    Пустой вход -> пустая строка; решать, что с ней делать, должен вызывающий.
    """
    return BLOCK_SEPARATOR.join(f"{m.content} {summarize_metadata(m)}" for m in matches)


def render_system_prompt(context: str) -> str:
    # Контекст подставляется дословно, фигурные скобки в нём не интерпретируются
    return LOCAL_SYSTEM_TEMPLATE.replace("{context}", context)
