#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_CSV_NAME = "macroeconomic-indicator-2007-2017-by-monetary-sector.csv"


@dataclass
class EmbeddingConfig:
    """Параметры модели эмбеддингов.

    - model_name: имя модели HuggingFace для векторизации текста
    - embed_batch_size: размер батча при построении эмбеддингов
    """
    model_name: str = "BAAI/bge-small-en-v1.5"
    embed_batch_size: int = 32


@dataclass
class VectorStoreConfig:
    """Параметры векторного хранилища (Weaviate).

    - index_name: имя индекса/коллекции в Weaviate
    - use_embedded: использовать ли встроенный (embedded) Weaviate
    - weaviate_url: URL удалённого Weaviate (если используется)
    - weaviate_api_key: API-ключ для удалённого Weaviate (опционально)
    - grpc_port: порт gRPC удалённого Weaviate
    """
    index_name: str = "MacroIndicators"
    use_embedded: bool = True
    weaviate_url: Optional[str] = None
    weaviate_api_key: Optional[str] = None
    grpc_port: int = 50051


@dataclass
class LLMConfig:
    """Параметры языковой модели (OpenAI-совместимый API) для LOCAL-бэкенда.

    - base_url: базовый URL сервиса LLM
    - api_key: ключ доступа
    - model_name: имя модели
    - temperature, top_p, max_tokens: параметры генерации
    - enable_thinking: передавать ли спец.параметр enable_thinking
    """
    base_url: str = "http://localhost:8080/v1"
    api_key: str = "test"
    model_name: str = "unsloth/Qwen3-8B-unsloth-bnb-4bit"
    temperature: float = 0.3
    top_p: float = 0.9
    max_tokens: int = 800
    enable_thinking: bool = False


@dataclass
class ExternalLLMConfig:
    """Параметры EXTERNAL-бэкенда (произвольный HTTP-эндпоинт)."""
    timeout_s: float = 60.0


@dataclass
class IngestConfig:
    """Параметры загрузки записей.

    - csv_path: путь к CSV с показателями
    - source_tag: значение метаданных ``source`` для всех загруженных единиц
    - load_on_startup: загружать ли данные при старте приложения
    """
    csv_path: str = os.path.join("data", DEFAULT_CSV_NAME)
    source_tag: str = DEFAULT_CSV_NAME
    load_on_startup: bool = False


@dataclass
class RetrievalConfig:
    """Параметры извлечения.

    - top_k: сколько совпадений возвращать по умолчанию (поиск через API)
    - context_top_k: сколько совпадений брать в контекст генерации
    - search_threshold: порог сходства для открытого поиска
    - context_threshold: порог при сборе контекста для генерации
    - filtered_threshold: порог для поиска с фильтром по году
    """
    top_k: int = 5
    context_top_k: int = 5
    search_threshold: float = 0.75
    context_threshold: float = 0.6
    filtered_threshold: float = 0.7


@dataclass
class AppConfig:
    """Корневой конфиг приложения."""
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    external_llm: ExternalLLMConfig = field(default_factory=ExternalLLMConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    log_level: str = "INFO"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_config() -> AppConfig:
    """Собирает конфиг: значения по умолчанию, поверх них переменные окружения.

    Некорректные числовые значения приводят к ValueError при старте.
    """
    cfg = AppConfig()

    if os.getenv("EMBEDDING_MODEL"):
        cfg.embedding.model_name = os.getenv("EMBEDDING_MODEL")

    # Remote Weaviate включается самим наличием URL
    if os.getenv("WEAVIATE_URL"):
        cfg.vector_store.weaviate_url = os.getenv("WEAVIATE_URL")
        cfg.vector_store.use_embedded = False
    if os.getenv("WEAVIATE_API_KEY"):
        cfg.vector_store.weaviate_api_key = os.getenv("WEAVIATE_API_KEY")
    if os.getenv("WEAVIATE_GRPC_PORT"):
        cfg.vector_store.grpc_port = int(os.getenv("WEAVIATE_GRPC_PORT"))
    if os.getenv("MACRO_RAG_INDEX_NAME"):
        cfg.vector_store.index_name = os.getenv("MACRO_RAG_INDEX_NAME")

    if os.getenv("OPENAI_BASE_URL"):
        cfg.llm.base_url = os.getenv("OPENAI_BASE_URL")
    if os.getenv("OPENAI_API_KEY"):
        cfg.llm.api_key = os.getenv("OPENAI_API_KEY")
    if os.getenv("LLM_MODEL"):
        cfg.llm.model_name = os.getenv("LLM_MODEL")
    if os.getenv("LLM_TEMPERATURE"):
        cfg.llm.temperature = float(os.getenv("LLM_TEMPERATURE"))
    if os.getenv("LLM_MAX_TOKENS"):
        cfg.llm.max_tokens = int(os.getenv("LLM_MAX_TOKENS"))

    if os.getenv("EXTERNAL_LLM_TIMEOUT"):
        cfg.external_llm.timeout_s = float(os.getenv("EXTERNAL_LLM_TIMEOUT"))

    if os.getenv("MACRO_RAG_CSV_PATH"):
        cfg.ingest.csv_path = os.getenv("MACRO_RAG_CSV_PATH")
    if os.getenv("MACRO_RAG_SOURCE_TAG"):
        cfg.ingest.source_tag = os.getenv("MACRO_RAG_SOURCE_TAG")
    if os.getenv("MACRO_RAG_LOAD_ON_STARTUP"):
        cfg.ingest.load_on_startup = _env_bool(os.getenv("MACRO_RAG_LOAD_ON_STARTUP"))

    if os.getenv("MACRO_RAG_TOP_K"):
        cfg.retrieval.top_k = int(os.getenv("MACRO_RAG_TOP_K"))

    if os.getenv("MACRO_RAG_LOG_LEVEL"):
        cfg.log_level = os.getenv("MACRO_RAG_LOG_LEVEL").upper()

    return cfg
