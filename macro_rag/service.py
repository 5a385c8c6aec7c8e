#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Фасад пайплайна: четыре операции для HTTP-слоя и сборка зависимостей при старте."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional, Union

import requests
from llama_index.embeddings.huggingface import HuggingFaceEmbedding

from .config import AppConfig
from .engine import GenerationResult, RagEngine
from .indexer import RecordIndexer
from .llm import ExternalBackend, GenerationBackend, LocalBackend, OpenAIChatLLM
from .retriever import Retriever
from .vectorstore import LlamaIndexRecordStore, Match, VectorStore, make_weaviate_client

logger = logging.getLogger(__name__)


class RagService:
    """Собранный пайплайн. Создаётся один раз и разделяется между запросами.

    Изменяемого состояния между запросами нет: хранилище, LLM-клиент и
    HTTP-сессия передаются готовыми.
    """
    def __init__(
        self,
        store: VectorStore,
        local_backend: GenerationBackend,
        cfg: Optional[AppConfig] = None,
        http_session: Optional[requests.Session] = None,
    ) -> None:
        self.cfg = cfg or AppConfig()
        self.store = store
        self.local_backend = local_backend
        self._http_session = http_session or requests.Session()
        self.indexer = RecordIndexer(store, source_tag=self.cfg.ingest.source_tag)
        self.retriever = Retriever(store, self.cfg.retrieval)
        self.engine = RagEngine(self.retriever)

    def ingest(self, source: Optional[Union[str, Path]] = None) -> int:
        """Загружает CSV-источник (по умолчанию из конфига). Ошибки -> IngestError."""
        src = source or self.cfg.ingest.csv_path
        logger.info("Loading and storing documents from CSV: %s", src)
        return self.indexer.ingest_source(src)

    def search(self, query: str, top_k: Any = None, threshold: Any = None) -> List[Match]:
        return self.retriever.search_text(query, top_k=top_k, threshold=threshold)

    def search_filtered(self, query: str, period: str, top_k: Any = None) -> List[Match]:
        return self.retriever.search_filtered(query, period, top_k=top_k)

    def external_backend(self, url: str) -> ExternalBackend:
        return ExternalBackend(url, session=self._http_session, timeout_s=self.cfg.external_llm.timeout_s)

    def ask(self, prompt: str, backend: Optional[GenerationBackend] = None) -> GenerationResult:
        """Ответ на вопрос; без backend используется LOCAL. Исключений не поднимает."""
        return self.engine.generate(prompt, backend or self.local_backend)

    def ask_external(self, prompt: str, url: str) -> GenerationResult:
        return self.ask(prompt, self.external_backend(url))

    def close(self) -> None:
        """Освобождает соединения: клиент хранилища (если он их держит) и HTTP-сессию."""
        close_store = getattr(self.store, "close", None)
        if close_store is not None:
            close_store()
        self._http_session.close()


def build_service(cfg: AppConfig) -> RagService:
    """Создаёт клиентов (Weaviate, эмбеддер, LLM) и собирает RagService."""
    embed_model = HuggingFaceEmbedding(
        model_name=cfg.embedding.model_name,
        embed_batch_size=cfg.embedding.embed_batch_size,
    )
    client = make_weaviate_client(cfg.vector_store)
    store = LlamaIndexRecordStore(client, cfg.vector_store.index_name, embed_model)

    llm = OpenAIChatLLM(
        base_url=cfg.llm.base_url,
        api_key=cfg.llm.api_key,
        model_name=cfg.llm.model_name,
        temperature=cfg.llm.temperature,
        top_p=cfg.llm.top_p,
        max_tokens=cfg.llm.max_tokens,
        enable_thinking=cfg.llm.enable_thinking,
    )
    logger.info(
        "RAG service ready (index=%s, embedding=%s, llm=%s)",
        cfg.vector_store.index_name, cfg.embedding.model_name, cfg.llm.model_name,
    )
    return RagService(store=store, local_backend=LocalBackend(llm), cfg=cfg)
