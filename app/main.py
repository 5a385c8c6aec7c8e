#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from macro_rag.config import load_config
from macro_rag.errors import IngestError, RagError, ValidationError
from macro_rag.logging_setup import configure_logging
from macro_rag.service import RagService, build_service

logger = logging.getLogger("macro_rag.app")

SERVICE_NAME = "Macroeconomic RAG API (Weaviate vector store)"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Собирает сервис один раз при старте; при необходимости грузит данные."""
    cfg = load_config()
    configure_logging(cfg.log_level)
    service = build_service(cfg)
    app.state.service = service

    try:
        if cfg.ingest.load_on_startup:
            logger.info("Loading CSV data into vector store on startup")
            try:
                n = service.ingest()
                logger.info("Data loaded successfully on startup: %d documents", n)
            except IngestError as exc:
                logger.error("Failed to load data on startup: %s", exc)
        else:
            logger.info("Data loading on startup is disabled. Use POST /api/rag/load-data to load data manually.")
        yield
    finally:
        service.close()


app = FastAPI(title="Macroeconomic RAG API", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_service(request: Request) -> RagService:
    return request.app.state.service


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "message": message})


class LoadDataRequest(BaseModel):
    """Тело запроса на загрузку; без source берётся CSV из конфига."""
    source: Optional[str] = None


class LoadDataResponse(BaseModel):
    status: str = "success"
    message: str
    documents_stored: int
    took_ms: int


class SearchRequest(BaseModel):
    """Открытый поиск. topK/similarityThreshold могут прийти строками или числами."""
    query: Optional[str] = None
    topK: Optional[Any] = None
    similarityThreshold: Optional[Any] = None


class SearchByYearRequest(BaseModel):
    """Поиск с фильтром по году (точное совпадение метаданных)."""
    query: Optional[str] = None
    year: Optional[str] = None
    topK: Optional[Any] = None


class SearchResponse(BaseModel):
    status: str = "success"
    query: str
    totalResults: int
    results: List[Dict[str, Any]]


class SearchByYearResponse(SearchResponse):
    year: str


class AskRequest(BaseModel):
    prompt: Optional[str] = None


class AskExternalRequest(BaseModel):
    prompt: Optional[str] = None
    url: Optional[str] = None


class AskResponse(BaseModel):
    """Ответ на вопрос: текст (ответ модели или заглушка) и его вид."""
    status: str = "success"
    prompt: str
    response: str
    kind: str


class AskExternalResponse(AskResponse):
    externalUrl: str


@app.get("/health")
def health() -> Dict[str, str]:
    """Простой health-check эндпоинт для мониторинга/оркестраторов."""
    return {"status": "ok"}


@app.get("/api/rag/health")
def rag_health() -> Dict[str, str]:
    return {"status": "healthy", "service": SERVICE_NAME}


@app.post("/api/rag/load-data", response_model=LoadDataResponse)
def load_data(req: Optional[LoadDataRequest] = None, service: RagService = Depends(get_service)):
    """Загружает CSV с показателями в векторное хранилище."""
    t0 = time.time()
    source = req.source if req else None
    try:
        n = service.ingest(source)
    except IngestError as e:
        logger.error("Error loading data: %s", e)
        return _error(500, f"Failed to load data: {e}")
    took_ms = int((time.time() - t0) * 1000)
    return LoadDataResponse(
        message=f"Data successfully loaded into vector store ({n} documents)",
        documents_stored=n,
        took_ms=took_ms,
    )


@app.post("/api/rag/search", response_model=SearchResponse)
def search(req: SearchRequest, service: RagService = Depends(get_service)):
    """Поиск похожих показателей без фильтров."""
    if not req.query or not req.query.strip():
        return _error(400, "Query cannot be empty")
    try:
        matches = service.search(req.query, top_k=req.topK, threshold=req.similarityThreshold)
    except ValidationError as e:
        return _error(400, str(e))
    except RagError as e:
        logger.error("Error performing search: %s", e)
        return _error(500, f"Search failed: {e}")
    return SearchResponse(
        query=req.query,
        totalResults=len(matches),
        results=[m.to_dict() for m in matches],
    )


@app.post("/api/rag/search-by-year", response_model=SearchByYearResponse)
def search_by_year(req: SearchByYearRequest, service: RagService = Depends(get_service)):
    """Поиск похожих показателей за конкретный год."""
    if not req.query or not req.query.strip():
        return _error(400, "Query cannot be empty")
    if not req.year or not req.year.strip():
        return _error(400, "Year cannot be empty")
    try:
        matches = service.search_filtered(req.query, req.year, top_k=req.topK)
    except ValidationError as e:
        return _error(400, str(e))
    except RagError as e:
        logger.error("Error performing year-filtered search: %s", e)
        return _error(500, f"Search failed: {e}")
    return SearchByYearResponse(
        query=req.query,
        year=req.year,
        totalResults=len(matches),
        results=[m.to_dict() for m in matches],
    )


@app.post("/api/rag/ask", response_model=AskResponse)
def ask(req: AskRequest, service: RagService = Depends(get_service)):
    """Вопрос к LOCAL-модели по найденному контексту."""
    if not req.prompt or not req.prompt.strip():
        return _error(400, "Prompt cannot be empty")
    result = service.ask(req.prompt)
    return AskResponse(prompt=req.prompt, response=result.text, kind=result.kind.value)


@app.post("/api/rag/ask-external", response_model=AskExternalResponse)
def ask_external(req: AskExternalRequest, service: RagService = Depends(get_service)):
    """Вопрос к внешнему LLM по URL из запроса."""
    if not req.prompt or not req.prompt.strip():
        return _error(400, "Prompt cannot be empty")
    if not req.url or not req.url.strip():
        return _error(400, "External LLM URL cannot be empty")
    result = service.ask_external(req.prompt, req.url.strip())
    return AskExternalResponse(
        prompt=req.prompt,
        externalUrl=req.url,
        response=result.text,
        kind=result.kind.value,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=False)
