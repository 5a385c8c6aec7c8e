"""Ядро RAG-пайплайна по макроэкономическим показателям.

Содержит:
- config: dataclass-конфиги (эмбеддинги, Weaviate, LLM, загрузка, поиск) и чтение окружения
- records: записи показателей, их валидация и нормализация, чтение CSV
- vectorstore: контракт хранилища, клиент Weaviate (embedded/remote), адаптер LlamaIndex
- indexer: загрузка нормализованных записей в хранилище
- retriever: открытый поиск и поиск с фильтром по году
- context: сборка контекста и системные инструкции
- llm: бэкенды генерации LOCAL (OpenAI-совместимый API) и EXTERNAL (HTTP)
- engine: движок RAG с заглушками при ошибках
- service: фасад для HTTP-слоя и сборка зависимостей
"""
