"""
Реестр фильтров и встроенные фильтры.

Фильтр: чистая функция (значение, [аргумент]) -> значение. Фильтры
тотальны: на неподходящем типе они возвращают вход без изменений или
лучшее доступное преобразование, но никогда не прерывают рендеринг.

Глобальный реестр заполняется один раз до начала разбора шаблонов и
далее только читается. Регистрация во время рендеринга не поддерживается
и не защищена блокировками.
"""

from __future__ import annotations

import html
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterator, Mapping, Optional

from .expressions.model import FilterFunction
from .values import (
    UnresolvedPath,
    is_mapping,
    is_number,
    is_sequence,
    stringify,
)

logger = logging.getLogger(__name__)


class FilterRegistry:
    """
    Реестр фильтров: имя -> функция.
    """

    NAME_PATTERN = re.compile(r'^[A-Za-z_][\w-]*\??$')

    def __init__(self, filters: Optional[Mapping[str, FilterFunction]] = None):
        self._filters: Dict[str, FilterFunction] = {}
        for name, function in (filters or {}).items():
            self.register(name, function)

    def register(self, name: str, function: FilterFunction) -> None:
        """
        Регистрирует фильтр.

        Raises:
            ValueError: Если имя не является идентификатором
            TypeError: Если function не вызываемый объект
        """
        if not isinstance(name, str) or not self.NAME_PATTERN.match(name):
            raise ValueError(f"Invalid filter name: {name!r}")
        if not callable(function):
            raise TypeError(f"Filter '{name}' must be callable, got {type(function).__name__}")

        if name in self._filters and self._filters[name] is not function:
            logger.warning(f"Filter '{name}' overwrites existing filter")
        self._filters[name] = function
        logger.debug(f"Registered filter: {name}")

    def get(self, name: str) -> Optional[FilterFunction]:
        return self._filters.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._filters

    def __iter__(self) -> Iterator[str]:
        return iter(self._filters)

    def __len__(self) -> int:
        return len(self._filters)

    def layered(self, extra: Mapping[str, FilterFunction]) -> "FilterRegistry":
        """
        Возвращает новый реестр: копия текущего с фильтрами extra поверх.

        Текущий реестр не изменяется.
        """
        merged = FilterRegistry()
        merged._filters = dict(self._filters)
        for name, function in extra.items():
            merged.register(name, function)
        return merged


# --------------------------------------------------------------------------- #
# Вспомогательные преобразования
# --------------------------------------------------------------------------- #

def to_number(value: Any) -> Any:
    """
    Приводит значение к числу: числа как есть, числовые строки разбираются,
    всё остальное даёт 0.
    """
    if is_number(value):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return 0
    return 0


def _arithmetic(value: Any, argument: Any, operation) -> Any:
    # Неразрешённый путь остаётся плейсхолдером
    if isinstance(value, UnresolvedPath):
        return value
    left, right = to_number(value), to_number(argument)
    if isinstance(left, Decimal) or isinstance(right, Decimal):
        try:
            return operation(Decimal(str(left)), Decimal(str(right)))
        except InvalidOperation:
            return left
    return operation(left, right)


# --------------------------------------------------------------------------- #
# Встроенные фильтры
# --------------------------------------------------------------------------- #

def capitalize(value: Any) -> Any:
    """Заглавная первая буква каждого слова, остальные символы не меняются."""
    if isinstance(value, UnresolvedPath):
        return value
    return re.sub(r'(^|\s)(\S)', lambda m: m.group(1) + m.group(2).upper(), stringify(value))


def upcase(value: Any) -> Any:
    if isinstance(value, UnresolvedPath):
        return value
    return stringify(value).upper()


def downcase(value: Any) -> Any:
    if isinstance(value, UnresolvedPath):
        return value
    return stringify(value).lower()


def first(value: Any) -> Any:
    if is_sequence(value) and value:
        return value[0]
    return None


def last(value: Any) -> Any:
    if is_sequence(value) and value:
        return value[-1]
    return None


def size(value: Any) -> int:
    if isinstance(value, str) or is_sequence(value) or is_mapping(value):
        return len(value)
    return 0


def plus(value: Any, argument: Any = 0) -> Any:
    return _arithmetic(value, argument, lambda a, b: a + b)


def minus(value: Any, argument: Any = 0) -> Any:
    return _arithmetic(value, argument, lambda a, b: a - b)


def times(value: Any, argument: Any = 1) -> Any:
    return _arithmetic(value, argument, lambda a, b: a * b)


def join(value: Any, separator: Any = " ") -> Any:
    if not is_sequence(value):
        return value
    return stringify(separator).join(stringify(item) for item in value)


def default(value: Any, fallback: Any = None) -> Any:
    """Подставляет fallback для nil, false, пустой строки и пустой коллекции."""
    if value is None or value is False:
        return fallback
    if (isinstance(value, str) or is_sequence(value) or is_mapping(value)) and len(value) == 0:
        return fallback
    return value


def append(value: Any, suffix: Any = None) -> Any:
    return stringify(value) + stringify(suffix)


def prepend(value: Any, prefix: Any = None) -> Any:
    return stringify(prefix) + stringify(value)


def strip(value: Any) -> Any:
    if isinstance(value, UnresolvedPath):
        return value
    return stringify(value).strip()


def escape(value: Any) -> Any:
    return html.escape(stringify(value))


BUILTIN_FILTERS: Dict[str, FilterFunction] = {
    "capitalize": capitalize,
    "upcase": upcase,
    "downcase": downcase,
    "first": first,
    "last": last,
    "size": size,
    "plus": plus,
    "minus": minus,
    "times": times,
    "join": join,
    "default": default,
    "append": append,
    "prepend": prepend,
    "strip": strip,
    "escape": escape,
}


# --------------------------------------------------------------------------- #
# Глобальный реестр
# --------------------------------------------------------------------------- #

_registry: Optional[FilterRegistry] = None


def get_registry() -> FilterRegistry:
    """Возвращает процессный реестр фильтров, создавая его при первом обращении."""
    global _registry
    if _registry is None:
        _registry = FilterRegistry(BUILTIN_FILTERS)
        logger.debug(f"Default filter registry initialized with {len(_registry)} filters")
    return _registry


def register_filter(name: str, function: FilterFunction) -> None:
    """
    Регистрирует фильтр в глобальном реестре.

    Вызывать только на этапе инициализации, до разбора шаблонов.
    """
    get_registry().register(name, function)


__all__ = [
    "FilterRegistry",
    "BUILTIN_FILTERS",
    "get_registry",
    "register_filter",
    "to_number",
]
