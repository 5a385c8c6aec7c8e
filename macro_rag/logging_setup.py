#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Настраивает корневой логгер пакета: один StreamHandler в stdout.

    Повторный вызов не добавляет обработчики, только меняет уровень.
    """
    resolved = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(resolved, int):
        resolved = logging.INFO

    logger = logging.getLogger("macro_rag")
    logger.setLevel(resolved)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)
        logger.propagate = False
    for h in logger.handlers:
        h.setLevel(resolved)
