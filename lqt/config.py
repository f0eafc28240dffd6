"""
Опции разбора шаблонов и их загрузка из YAML.

Пример файла:

    placeholders: true
    filters:
      shout: mypackage.filters:shout
    tags:
      now: mypackage.tags:now

Значения filters/tags: ссылки вида "модуль:атрибут" на вызываемые объекты.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .errors import ConfigError
from .expressions.model import FilterFunction
from .filters import FilterRegistry, get_registry
from .nodes import TagFunction
from .parser import RESERVED_TAGS, TAG_NAME_PATTERN, registered_tags

logger = logging.getLogger(__name__)

DEFAULT_OPTIONS_FILE = "lqt.yaml"

_KNOWN_KEYS = {"filters", "tags", "placeholders"}

# --------------------------------------------------------------------------- #
# YAML loader
# --------------------------------------------------------------------------- #
_yaml = YAML(typ="safe")


@dataclass(frozen=True)
class ParseOptions:
    """
    Опции разбора шаблона.

    Attributes:
        filters: Дополнительные фильтры поверх глобального реестра
        tags: Пользовательские строчные теги
        placeholders: Выводить {{PATH}} для путей, не найденных на объектах;
                      при False такие пути дают nil
    """
    filters: Mapping[str, FilterFunction] = field(default_factory=dict)
    tags: Mapping[str, TagFunction] = field(default_factory=dict)
    placeholders: bool = True

    def __post_init__(self):
        for name, function in self.filters.items():
            if not callable(function):
                raise ConfigError(f"Filter '{name}' must be callable, got {type(function).__name__}")
            if not FilterRegistry.NAME_PATTERN.match(str(name)):
                raise ConfigError(f"Invalid filter name: {name!r}")

        for name, function in self.tags.items():
            if not isinstance(name, str) or not TAG_NAME_PATTERN.match(name):
                raise ConfigError(f"Invalid tag name: {name!r}")
            if name in RESERVED_TAGS:
                raise ConfigError(f"Tag '{name}' is built in and cannot be redefined")
            if not callable(function):
                raise ConfigError(f"Tag '{name}' must be callable, got {type(function).__name__}")

        if not isinstance(self.placeholders, bool):
            raise ConfigError("'placeholders' must be a boolean")

    def filter_registry(self) -> FilterRegistry:
        """Реестр фильтров для разбора: глобальный с фильтрами опций поверх."""
        registry = get_registry()
        if not self.filters:
            return registry
        return registry.layered(self.filters)

    def tag_table(self) -> Dict[str, TagFunction]:
        """Теги для разбора: глобальные с тегами опций поверх."""
        tags = registered_tags()
        tags.update(self.tags)
        return tags

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ParseOptions":
        """
        Строит опции из словаря (например, прочитанного из YAML).

        Raises:
            ConfigError: При неизвестных ключах или некорректных значениях
        """
        if not isinstance(raw, Mapping):
            raise ConfigError(f"Options must be a mapping, got {type(raw).__name__}")

        unknown = set(raw) - _KNOWN_KEYS
        if unknown:
            raise ConfigError(f"Unknown option keys: {', '.join(sorted(unknown))}")

        return cls(
            filters=_resolve_callables(raw.get("filters") or {}, "filters"),
            tags=_resolve_callables(raw.get("tags") or {}, "tags"),
            placeholders=raw.get("placeholders", True),
        )


DEFAULT_OPTIONS = ParseOptions()


def _resolve_callables(section: Any, section_name: str) -> Dict[str, Any]:
    """Заменяет ссылки "модуль:атрибут" на объекты."""
    if not isinstance(section, Mapping):
        raise ConfigError(f"'{section_name}' must be a mapping")

    resolved: Dict[str, Any] = {}
    for name, value in section.items():
        resolved[str(name)] = import_reference(value) if isinstance(value, str) else value
    return resolved


def import_reference(reference: str) -> Any:
    """
    Импортирует объект по ссылке "пакет.модуль:атрибут".

    Raises:
        ConfigError: Если модуль или атрибут не найдены
    """
    module_name, sep, attr_path = reference.partition(":")
    if not sep or not module_name or not attr_path:
        raise ConfigError(f"Invalid reference '{reference}': expected 'module:attribute'")

    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import module '{module_name}': {e}") from e

    for part in attr_path.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise ConfigError(f"Module '{module_name}' has no attribute '{attr_path}'") from None

    logger.debug(f"Resolved reference {reference}")
    return target


def load_options(path: Union[str, Path] = DEFAULT_OPTIONS_FILE) -> ParseOptions:
    """
    Загружает опции разбора из YAML-файла.

    • Если файла нет, вернуть опции по умолчанию.
    • Пустой файл эквивалентен пустому словарю.

    Raises:
        ConfigError: Если YAML некорректен или содержит недопустимые опции
    """
    path = Path(path)
    if not path.is_file():
        logger.debug(f"Options file {path} not found, using defaults")
        return DEFAULT_OPTIONS

    try:
        raw = _yaml.load(path.read_text(encoding="utf-8")) or {}
    except YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"YAML must be a mapping: {path}")

    return ParseOptions.from_dict(raw)


def coerce_options(options: Optional[Union[ParseOptions, Mapping[str, Any]]]) -> ParseOptions:
    """Принимает None, ParseOptions или словарь опций."""
    if options is None:
        return DEFAULT_OPTIONS
    if isinstance(options, ParseOptions):
        return options
    return ParseOptions.from_dict(options)


__all__ = [
    "DEFAULT_OPTIONS_FILE",
    "ParseOptions",
    "DEFAULT_OPTIONS",
    "import_reference",
    "load_options",
    "coerce_options",
]
