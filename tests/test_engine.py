"""
Тесты движка RAG и бэкендов генерации.

Сценарии:
- Нет совпадений -> заглушка no-context, бэкенд не вызывается
- LOCAL: системная инструкция с контекстом + вопрос; исключение -> заглушка ошибки
- EXTERNAL: payload {prompt, context, system_message}; сетевая ошибка / не-2xx /
  не-JSON -> заглушка ошибки; JSON без "response" -> заглушка формата
- Ошибка хранилища при извлечении -> заглушка ошибки, без исключения

Запуск тестов:
  pytest -q tests/test_engine.py
"""

from typing import Any, Dict, List, Optional

import pytest
import requests

from macro_rag.config import RetrievalConfig
from macro_rag.context import EXTERNAL_SYSTEM_MESSAGE
from macro_rag.engine import NO_CONTEXT_FALLBACK, GenerationResult, RagEngine, ResultKind
from macro_rag.errors import StoreError
from macro_rag.llm import (
    EXTERNAL_ERROR_FALLBACK,
    LOCAL_ERROR_FALLBACK,
    UNEXPECTED_FORMAT_FALLBACK,
    ExternalBackend,
    LocalBackend,
)
from macro_rag.retriever import Retriever
from macro_rag.vectorstore import Match

URL = "http://llm.example/generate"


class _DummyStore:
    def __init__(self, matches: List[Match]) -> None:
        self._matches = matches
        self.calls: List[Dict[str, Any]] = []

    def add(self, units) -> None:  # pragma: no cover
        pass

    def similarity_search(self, text, top_k, threshold, metadata_filter=None):
        self.calls.append({"text": text, "top_k": top_k, "threshold": threshold, "filter": metadata_filter})
        return [m for m in self._matches if m.score >= threshold][:top_k]


class _FailStore(_DummyStore):
    def similarity_search(self, *args, **kwargs):
        raise StoreError("weaviate unreachable")


class _DummyLLM:
    """Мок LOCAL-модели: запоминает сообщения и возвращает фиксированный ответ."""

    def __init__(self, answer: str = "Revenues grew 22.7% in 2007/08.", error: Optional[Exception] = None) -> None:
        self.answer = answer
        self.error = error
        self.calls: List[Dict[str, str]] = []

    def complete(self, system_message: str, user_message: str) -> str:
        self.calls.append({"system": system_message, "user": user_message})
        if self.error is not None:
            raise self.error
        return self.answer


class _DummyResponse:
    def __init__(self, status_code: int = 200, body: Any = None, invalid_json: bool = False) -> None:
        self.status_code = status_code
        self._body = body
        self._invalid_json = invalid_json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self) -> Any:
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._body


class _DummySession:
    """Мок requests.Session: отдаёт заготовленный ответ или поднимает ошибку."""

    def __init__(self, response: Optional[_DummyResponse] = None, error: Optional[Exception] = None) -> None:
        self.response = response
        self.error = error
        self.posts: List[Dict[str, Any]] = []

    def post(self, url: str, json: Any = None, timeout: float = None) -> _DummyResponse:
        self.posts.append({"url": url, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def _matches() -> List[Match]:
    return [
        Match("In 2007/08, Revenues was 22.7 Annual % Change",
              {"indicator": "Revenues", "units": "Annual % Change", "year": "2007/08"}, 0.88),
        Match("In 2008/09, Revenues was 15.5 Annual % Change",
              {"indicator": "Revenues", "units": "Annual % Change", "year": "2008/09"}, 0.71),
    ]


def _engine(store) -> RagEngine:
    return RagEngine(Retriever(store))


def test_no_matches_returns_no_context_fallback_without_backend_call() -> None:
    llm = _DummyLLM()
    store = _DummyStore([])

    result = _engine(store).generate("What was revenue in 2008?", LocalBackend(llm))

    assert result.text == NO_CONTEXT_FALLBACK
    assert result.kind is ResultKind.NO_CONTEXT
    assert llm.calls == []


def test_context_retrieval_parameters() -> None:
    store = _DummyStore([])
    _engine(store).generate("What was revenue in 2008?", LocalBackend(_DummyLLM()))
    assert store.calls[0]["top_k"] == 5
    assert store.calls[0]["threshold"] == 0.6
    assert store.calls[0]["filter"] is None


def test_local_backend_success() -> None:
    llm = _DummyLLM()

    result = _engine(_DummyStore(_matches())).generate("What was revenue?", LocalBackend(llm))

    assert result == GenerationResult(llm.answer, ResultKind.ANSWER)
    assert str(result) == llm.answer
    assert not result.is_fallback
    (call,) = llm.calls
    assert call["user"] == "What was revenue?"
    assert "Context Information:" in call["system"]
    assert "(Indicator: Revenues, Units: Annual % Change, Year: 2007/08)" in call["system"]
    assert call["system"].index("2007/08") < call["system"].index("2008/09")


def test_local_backend_exception_becomes_error_fallback() -> None:
    llm = _DummyLLM(error=RuntimeError("model crashed"))

    result = _engine(_DummyStore(_matches())).generate("What was revenue?", LocalBackend(llm))

    assert result.text == LOCAL_ERROR_FALLBACK
    assert result.kind is ResultKind.ERROR


def test_store_error_during_retrieval_is_soft() -> None:
    llm = _DummyLLM()

    result = _engine(_FailStore([])).generate("What was revenue?", LocalBackend(llm))

    assert result.text == LOCAL_ERROR_FALLBACK
    assert llm.calls == []


def test_unexpected_store_exception_during_retrieval_is_soft() -> None:
    class _BrokenStore(_DummyStore):
        def similarity_search(self, *args, **kwargs):
            raise KeyError("distance")

    llm = _DummyLLM()

    result = _engine(_BrokenStore([])).generate("What was revenue?", LocalBackend(llm))

    assert result.text == LOCAL_ERROR_FALLBACK
    assert result.kind is ResultKind.ERROR
    assert llm.calls == []


def test_context_top_k_ignores_search_default() -> None:
    store = _DummyStore([])
    cfg = RetrievalConfig(top_k=20)

    RagEngine(Retriever(store, cfg)).generate("What was revenue?", LocalBackend(_DummyLLM()))

    assert store.calls[0]["top_k"] == 5


def test_empty_prompt_is_soft() -> None:
    result = _engine(_DummyStore(_matches())).generate("", LocalBackend(_DummyLLM()))
    assert result.kind is ResultKind.ERROR


def test_external_backend_success_and_payload() -> None:
    session = _DummySession(_DummyResponse(body={"response": "Revenue was 22.7%.", "model": "x"}))
    backend = ExternalBackend(URL, session=session, timeout_s=5.0)

    result = _engine(_DummyStore(_matches())).generate("What was revenue?", backend)

    assert result.text == "Revenue was 22.7%."
    assert result.kind is ResultKind.ANSWER
    (post,) = session.posts
    assert post["url"] == URL
    assert post["timeout"] == 5.0
    assert set(post["json"]) == {"prompt", "context", "system_message"}
    assert post["json"]["prompt"] == "What was revenue?"
    assert post["json"]["system_message"] == EXTERNAL_SYSTEM_MESSAGE
    assert post["json"]["context"].startswith("In 2007/08, Revenues was 22.7")


def test_external_missing_response_key_is_unexpected_format() -> None:
    session = _DummySession(_DummyResponse(body={"status": "ok"}))

    result = _engine(_DummyStore(_matches())).generate("What was revenue?", ExternalBackend(URL, session=session))

    assert result.text == UNEXPECTED_FORMAT_FALLBACK
    assert result.kind is ResultKind.UNEXPECTED_FORMAT


@pytest.mark.parametrize("session", [
    _DummySession(error=requests.ConnectionError("connection refused")),
    _DummySession(error=requests.Timeout("read timed out")),
    _DummySession(_DummyResponse(status_code=502, body={"response": "ignored"})),
    _DummySession(_DummyResponse(invalid_json=True)),
])
def test_external_transport_failures_become_error_fallback(session: _DummySession) -> None:
    result = _engine(_DummyStore(_matches())).generate("What was revenue?", ExternalBackend(URL, session=session))

    assert result.text == EXTERNAL_ERROR_FALLBACK
    assert result.kind is ResultKind.ERROR


def test_external_no_matches_skips_http_call() -> None:
    session = _DummySession(_DummyResponse(body={"response": "x"}))

    result = _engine(_DummyStore([])).generate("What was revenue in 2008?", ExternalBackend(URL, session=session))

    assert result.text == NO_CONTEXT_FALLBACK
    assert session.posts == []


def test_fallbacks_are_distinguishable() -> None:
    texts = {NO_CONTEXT_FALLBACK, LOCAL_ERROR_FALLBACK, EXTERNAL_ERROR_FALLBACK, UNEXPECTED_FORMAT_FALLBACK}
    assert len(texts) == 4


def test_new_backend_needs_no_engine_change() -> None:
    class _EchoBackend:
        name = "echo"
        error_fallback = "echo failed"

        def generate(self, user_query: str, context: str) -> str:
            return f"{user_query} | {context.count(chr(10) * 2) + 1} blocks"

    result = _engine(_DummyStore(_matches())).generate("q", _EchoBackend())
    assert result.text == "q | 2 blocks"
