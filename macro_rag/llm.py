#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Бэкенды генерации: LOCAL (OpenAI-совместимый Chat API) и EXTERNAL (HTTP-эндпоинт).

Оба реализуют один интерфейс ``generate(user_query, context) -> str`` и
поднимают BackendError при любой неудаче, так что движку не нужно знать,
с каким бэкендом он работает.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Protocol

import requests
from openai import OpenAI

from .context import EXTERNAL_SYSTEM_MESSAGE, render_system_prompt
from .errors import BackendError, UnexpectedResponseError

logger = logging.getLogger(__name__)

LOCAL_ERROR_FALLBACK = "I encountered an error while processing your request. Please try again later."
EXTERNAL_ERROR_FALLBACK = (
    "I encountered an error while calling the external LLM. Please check the URL and try again."
)
UNEXPECTED_FORMAT_FALLBACK = "External LLM returned an unexpected response format."


class GenerationBackend(Protocol):
    name: str
    error_fallback: str

    def generate(self, user_query: str, context: str) -> str: ...


class ChatCompleter(Protocol):
    def complete(self, system_message: str, user_message: str) -> str: ...


class OpenAIChatLLM:
    """Клиент OpenAI-совместимого Chat Completions API (vLLM, OpenAI и т.п.).

    Один синхронный вызов на запрос: system + user сообщения, ответ — текст.
    """
    def __init__(
        self,
        base_url: str,
        api_key: str,
        model_name: str,
        temperature: float = 0.3,
        top_p: float = 0.9,
        max_tokens: int = 800,
        enable_thinking: bool = False,
    ) -> None:
        self._client = OpenAI(base_url=base_url, api_key=api_key)
        self._model = model_name
        self._temperature = float(temperature)
        self._top_p = float(top_p)
        self._max_tokens = int(max_tokens)
        self._enable_thinking = bool(enable_thinking)

    @property
    def model_name(self) -> str:
        return self._model

    @staticmethod
    def _make_messages(system_message: str, user_message: str) -> List[Dict[str, str]]:
        """Формирует список сообщений (system + user) для Chat API."""
        return [
            {"role": "system", "content": system_message},
            {"role": "user", "content": user_message},
        ]

    def complete(self, system_message: str, user_message: str) -> str:
        """Синхронное получение единого текста ответа."""
        resp = self._client.chat.completions.create(
            model=self._model,
            messages=self._make_messages(system_message, user_message),
            extra_body={"enable_thinking": self._enable_thinking},
            temperature=self._temperature,
            top_p=self._top_p,
            max_tokens=self._max_tokens,
        )
        return (resp.choices[0].message.content or "").strip()


class LocalBackend:
    """LOCAL: системная инструкция с подставленным контекстом + вопрос отдельным сообщением."""

    name = "local"
    error_fallback = LOCAL_ERROR_FALLBACK

    def __init__(self, llm: ChatCompleter) -> None:
        self._llm = llm

    def generate(self, user_query: str, context: str) -> str:
        system_message = render_system_prompt(context)
        logger.debug("Local LLM system message: %s", system_message)
        t0 = time.time()
        try:
            text = self._llm.complete(system_message, user_query)
        except Exception as exc:
            raise BackendError(f"Local LLM call failed: {exc}") from exc
        logger.info("Local LLM call completed in %d ms", int((time.time() - t0) * 1000))
        return text


class ExternalBackend:
    """EXTERNAL: один POST ``{prompt, context, system_message}`` на URL вызывающего.

    Ожидается JSON-объект с ключом ``response``. Сетевые ошибки, не-2xx и
    не-JSON -> BackendError; JSON без ``response`` -> UnexpectedResponseError.
    """

    name = "external"
    error_fallback = EXTERNAL_ERROR_FALLBACK

    def __init__(self, url: str, session: Optional[requests.Session] = None, timeout_s: float = 60.0) -> None:
        self.url = url
        self._session = session or requests.Session()
        self._timeout_s = timeout_s

    def build_payload(self, user_query: str, context: str) -> Dict[str, str]:
        return {
            "prompt": user_query,
            "context": context,
            "system_message": EXTERNAL_SYSTEM_MESSAGE,
        }

    def generate(self, user_query: str, context: str) -> str:
        payload = self.build_payload(user_query, context)
        logger.info("Sending request to external LLM at: %s", self.url)
        logger.debug("External LLM request payload: %s", payload)

        t0 = time.time()
        try:
            resp = self._session.post(self.url, json=payload, timeout=self._timeout_s)
            resp.raise_for_status()
            body: Any = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise BackendError(f"External LLM call to {self.url} failed: {exc}") from exc
        logger.info("External LLM call completed in %d ms", int((time.time() - t0) * 1000))

        if not isinstance(body, dict) or body.get("response") is None:
            raise UnexpectedResponseError(f"External LLM response has no 'response' key: {body!r}")
        return str(body["response"])
