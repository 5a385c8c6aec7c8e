#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Тонкий лаунчер API: ядро лежит в пакете `macro_rag`,
FastAPI-приложение — в `app/main.py`.

Запуск сервера:
  uvicorn app.main:app --host 0.0.0.0 --port 8000

Загрузка данных при старте: MACRO_RAG_LOAD_ON_STARTUP=1,
иначе POST /api/rag/load-data.
"""

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=False)
