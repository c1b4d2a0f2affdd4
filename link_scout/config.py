# === FILE: link_scout/config.py ===
"""
Модуль для загрузки и валидации конфигурации краулера LinkScout.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    field_validator,
)

__all__ = ["CrawlerConfig", "DEFAULT_FILE_TYPES", "load_config", "read_config_data"]

DEFAULT_FILE_TYPES: tuple[str, ...] = (
    "doc", "docx", "gif", "jpeg", "jpg", "pdf",
    "png", "ppt", "pptx", "xls", "xlsm", "xlsx",
)


class CrawlerConfig(BaseModel):
    """Конфигурация для одного запуска обхода."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    start_url: HttpUrl = Field(..., description="Страница, с которой начинается обход.")
    ignore_robots_txt: bool = Field(False, description="Не загружать и не учитывать robots.txt.")
    ignore_banned_strings: bool = Field(False, description="Не проверять запрещённые подстроки.")
    ignore_timeout: bool = Field(False, description="Отключить общий таймаут обхода.")
    recursive: bool = Field(True, description="False: проверять только ссылки стартовой страницы.")
    extra_disallow_patterns: List[str] = Field(
        default_factory=list, description="Дополнительные Disallow-шаблоны оператора."
    )
    banned_strings: List[str] = Field(
        default_factory=list, description="Подстроки, ссылки с которыми не посещаются."
    )
    max_timeout_ms: int = Field(60_000, gt=0, description="Общий таймаут обхода (миллисекунд).")
    request_timeout: float = Field(10.0, gt=0, description="Таймаут на один запрос (секунд).")
    user_agent: str = Field("LinkScoutBot/1.0", min_length=1, description="Заголовок User-Agent.")
    concurrency: int = Field(10, ge=1, description="Максимум одновременных запросов.")
    check_images: bool = Field(True, description="Проверять загрузку изображений.")
    excluded_selectors: List[str] = Field(
        default_factory=list, description="CSS-селекторы ссылок, исключённых из классификации."
    )
    recognized_file_types: List[str] = Field(
        default_factory=lambda: list(DEFAULT_FILE_TYPES),
        description="Расширения, которые считаются файлами-документами.",
    )

    @field_validator("extra_disallow_patterns", "banned_strings", "excluded_selectors", mode="before")
    def _split_commas(cls, v: Any) -> Any:
        # "a, b" в YAML/CLI равносильно ["a", "b"]
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator("recognized_file_types")
    def _normalize_extensions(cls, v: List[str]) -> List[str]:
        return [ext.lower().lstrip(".") for ext in v]

    @property
    def deadline(self) -> Optional[float]:
        """Общий таймаут в секундах или None, если он отключён."""
        return None if self.ignore_timeout else self.max_timeout_ms / 1000


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def read_config_data(path: Union[str, Path, None]) -> dict[str, Any]:
    """
    Читает YAML или JSON и возвращает словарь без валидации.
    При отсутствии файла бросает FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(_DEFAULT_CFG))
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _read_yaml(path_obj)
    if suffix == ".json":
        return _read_json(path_obj)
    raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")


def load_config(path: Union[str, Path, None]) -> CrawlerConfig:
    """Читает YAML или JSON и возвращает проверенный объект CrawlerConfig."""
    return CrawlerConfig(**read_config_data(path))
