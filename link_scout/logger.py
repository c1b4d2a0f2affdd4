# link_scout/logger.py
"""Логирование LinkScout.

Все модули пишут в один именованный логгер ``"LinkScout"``::

    from link_scout.logger import logger
    logger.warning("robots.txt unavailable")

Сообщения обхода уходят в stderr: stdout команды ``link-scout crawl``
занят JSON-отчётом. Пока CLI не вызвал :func:`init_logging`, логгер
ничего не выводит сам и передаёт записи корневому логгеру приложения.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, List, Union

LOGGER_NAME: Final[str] = "LinkScout"
DEFAULT_FORMAT: Final[str] = "%(asctime)s %(levelname)s %(message)s"

#: ротация файла логов: 5 МБ × 3 архива
_MAX_BYTES: Final[int] = 5 * 1024 * 1024
_BACKUPS: Final[int] = 3

logger: logging.Logger = logging.getLogger(LOGGER_NAME)
logger.addHandler(logging.NullHandler())


def init_logging(
    level: Union[int, str] = "INFO",
    log_file: Union[str, Path, None] = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Настроить логгер для запуска из CLI: stderr и, по желанию, файл с ротацией.

    Повторный вызов заменяет ранее установленные обработчики.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        handlers.append(
            RotatingFileHandler(str(log_file), maxBytes=_MAX_BYTES, backupCount=_BACKUPS, encoding="utf-8")
        )

    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    formatter = logging.Formatter(log_format)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def reset_logging() -> None:
    """Вернуть логгер в состояние библиотеки: без своих обработчиков, с propagate."""
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


__all__ = ["logger", "init_logging", "reset_logging", "LOGGER_NAME", "DEFAULT_FORMAT"]
