#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Векторное хранилище: контракт, клиент Weaviate (embedded/remote) и адаптер LlamaIndex."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence
from urllib.parse import urlparse

import weaviate
from weaviate.classes.init import Auth
from weaviate.classes.query import Filter, MetadataQuery

from llama_index.core import VectorStoreIndex
from llama_index.core.base.embeddings.base import BaseEmbedding
from llama_index.core.schema import TextNode
from llama_index.core.vector_stores.utils import metadata_dict_to_node
from llama_index.vector_stores.weaviate import WeaviateVectorStore

from .config import VectorStoreConfig
from .errors import StoreError
from .records import IndexableUnit

logger = logging.getLogger(__name__)

# Свойство, в котором WeaviateVectorStore хранит текст ноды
TEXT_KEY = "text"


@dataclass(frozen=True)
class MetadataEquals:
    """Структурный предикат ``metadata[field] == value``.

    Передаётся в API фильтров хранилища как есть, без сборки строки запроса.
    """
    field: str
    value: str


@dataclass
class Match:
    """Результат поиска: текст, метаданные и сходство (больше значит ближе)."""
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "metadata": dict(self.metadata), "score": self.score}


class VectorStore(Protocol):
    """Контракт хранилища, используемый индексатором и ретривером."""

    def add(self, units: Sequence[IndexableUnit]) -> None: ...

    def similarity_search(
        self,
        text: str,
        top_k: int,
        threshold: float,
        metadata_filter: Optional[MetadataEquals] = None,
    ) -> List[Match]: ...


def make_weaviate_client(cfg: VectorStoreConfig) -> weaviate.WeaviateClient:
    """Создаёт клиент Weaviate в зависимости от конфигурации.

    - embedded: локальный встроенный сервер Weaviate (без внешних сервисов)
    - remote: подключение к удалённому Weaviate (Docker/K8s) по URL, опционально с API‑ключом
    """
    if cfg.use_embedded:
        return weaviate.connect_to_embedded()
    if not cfg.weaviate_url:
        raise StoreError("Remote Weaviate requested but no URL configured.")

    parsed = urlparse(cfg.weaviate_url)
    if not parsed.hostname:
        raise StoreError(f"Invalid Weaviate URL: {cfg.weaviate_url}")
    secure = parsed.scheme == "https"
    auth = Auth.api_key(cfg.weaviate_api_key) if cfg.weaviate_api_key else None

    return weaviate.connect_to_custom(
        http_host=parsed.hostname,
        http_port=parsed.port or (443 if secure else 80),
        http_secure=secure,
        grpc_host=parsed.hostname,
        grpc_port=cfg.grpc_port,
        grpc_secure=secure,
        auth_credentials=auth,
    )


class LlamaIndexRecordStore:
    """Адаптер VectorStore поверх LlamaIndex ``VectorStoreIndex`` + Weaviate.

    Запись идёт через индекс LlamaIndex, поиск через ``near_vector`` клиента
    Weaviate. Эмбеддинги в обоих случаях считает ``embed_model``; она
    передаётся явно, глобальный ``Settings`` не трогается.
    """

    def __init__(self, client: Any, index_name: str, embed_model: BaseEmbedding) -> None:
        self._client = client
        self._index_name = index_name
        self._embed_model = embed_model
        self._vector_store = WeaviateVectorStore(weaviate_client=client, index_name=index_name, text_key=TEXT_KEY)
        self._index = VectorStoreIndex.from_vector_store(
            self._vector_store,
            embed_model=embed_model,
        )

    @staticmethod
    def _to_node(unit: IndexableUnit) -> TextNode:
        metadata = dict(unit.metadata)
        keys = list(metadata)
        # Метаданные не подмешиваются ни в эмбеддинг, ни в текст для LLM
        return TextNode(
            text=unit.content,
            metadata=metadata,
            excluded_embed_metadata_keys=keys,
            excluded_llm_metadata_keys=keys,
        )

    def add(self, units: Sequence[IndexableUnit]) -> None:
        nodes = [self._to_node(u) for u in units]
        try:
            self._index.insert_nodes(nodes)
        except Exception as exc:
            raise StoreError(f"Failed to add {len(nodes)} units to '{self._index_name}': {exc}") from exc
        logger.info("Stored %d units in Weaviate index '%s'", len(nodes), self._index_name)

    def similarity_search(
        self,
        text: str,
        top_k: int,
        threshold: float,
        metadata_filter: Optional[MetadataEquals] = None,
    ) -> List[Match]:
        """Поиск ближайших единиц по косинусному сходству.

        Порог уходит в Weaviate как абсолютная дистанция ``1 - threshold``,
        сходство в ответе равно ``1 - distance``. Score гибридного запроса
        LlamaIndex нормируется внутри выдачи и для порога не подходит.
        """
        filters = None
        if metadata_filter is not None:
            filters = Filter.by_property(metadata_filter.field).equal(metadata_filter.value)

        try:
            vector = self._embed_model.get_query_embedding(text)
            collection = self._client.collections.get(self._index_name)
            response = collection.query.near_vector(
                near_vector=vector,
                limit=top_k,
                distance=1.0 - threshold,
                filters=filters,
                return_metadata=MetadataQuery(distance=True),
            )
            return [self._to_match(obj) for obj in response.objects]
        except Exception as exc:
            raise StoreError(f"Similarity search on '{self._index_name}' failed: {exc}") from exc

    @staticmethod
    def _to_match(obj: Any) -> Match:
        props = dict(obj.properties)
        content = props.pop(TEXT_KEY, "") or ""
        node = metadata_dict_to_node(props)
        return Match(content=content, metadata=dict(node.metadata), score=1.0 - float(obj.metadata.distance))

    def close(self) -> None:
        self._client.close()
        logger.info("Weaviate client closed")
