"""
Модель значений времени рендеринга.

Данные шаблона приходят как произвольные объекты Python. Этот модуль
сводит их к закрытому набору вариантов (nil, bool, number, string,
sequence, mapping, object) и определяет для них:
- истинность
- равенство и упорядочивание для операторов сравнения
- строковое представление для вывода
- доступ к членам при разрешении путей вида a.b.c
"""

from __future__ import annotations

import enum
import inspect
import logging
import numbers
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any, Protocol, Tuple, runtime_checkable

logger = logging.getLogger(__name__)


class _Missing:
    """Маркер отсутствующего члена объекта (отличается от None/nil)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class ValueKind(enum.Enum):
    """Варианты значений модели."""
    NIL = "nil"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    OBJECT = "object"


@runtime_checkable
class Resolvable(Protocol):
    """
    Явный протокол доступа к объекту хоста.

    Объекты, реализующие его, полностью управляют тем, что видно шаблону.
    Каждый метод возвращает MISSING, если член не существует.
    Объекты без протокола разрешаются через getattr.
    """

    def get_field(self, name: str) -> Any:
        ...

    def call_method(self, name: str) -> Any:
        ...

    def to_display_string(self) -> Any:
        ...


class UnresolvedPath(str):
    """
    Строковый плейсхолдер для пути, последний сегмент которого не найден
    на существующем объекте: {{GHOLA.MASTER}}.

    Ведёт себя как обычная строка, но фильтры узнают его и пропускают без изменений.
    """

    path: Tuple[str, ...]

    def __new__(cls, path: Sequence[str]):
        text = "{{" + ".".join(path).upper() + "}}"
        instance = super().__new__(cls, text)
        instance.path = tuple(path)
        return instance

    def __repr__(self) -> str:
        return f"UnresolvedPath({'.'.join(self.path)!r})"


def is_number(value: Any) -> bool:
    return isinstance(value, numbers.Number) and not isinstance(value, (bool, complex))


def is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def is_mapping(value: Any) -> bool:
    return isinstance(value, Mapping)


def kind_of(value: Any) -> ValueKind:
    """Определяет вариант модели для произвольного значения Python."""
    if value is None:
        return ValueKind.NIL
    if isinstance(value, bool):
        return ValueKind.BOOL
    if is_number(value):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if is_mapping(value):
        return ValueKind.MAPPING
    if is_sequence(value):
        return ValueKind.SEQUENCE
    return ValueKind.OBJECT


def normalize(value: Any) -> Any:
    """Приводит входные данные к варианту модели (bytes → str, множества → список)."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, (set, frozenset)):
        return list(value)
    return value


# --------------------------------------------------------------------------- #
# Истинность и сравнение
# --------------------------------------------------------------------------- #

def is_truthy(value: Any) -> bool:
    """
    Истинность значения.

    Ложны только nil и false. Ноль, пустая строка и пустая коллекция истинны.
    """
    return value is not None and value is not False


def values_equal(left: Any, right: Any) -> bool:
    """
    Равенство значений.

    Значения разных вариантов никогда не равны, кроме чисел,
    которые сравниваются численно.
    """
    left_kind, right_kind = kind_of(left), kind_of(right)
    if left_kind != right_kind:
        return False

    if left_kind == ValueKind.NIL:
        return True
    if left_kind in (ValueKind.BOOL, ValueKind.STRING):
        return left == right
    if left_kind == ValueKind.NUMBER:
        return _to_comparable_number(left) == _to_comparable_number(right)
    if left_kind == ValueKind.SEQUENCE:
        return len(left) == len(right) and all(values_equal(a, b) for a, b in zip(left, right))
    if left_kind == ValueKind.MAPPING:
        if set(left.keys()) != set(right.keys()):
            return False
        return all(values_equal(left[key], right[key]) for key in left.keys())

    if left is right:
        return True
    try:
        return bool(left == right)
    except Exception as e:
        logger.debug(f"Object equality raised {type(e).__name__}; treating as unequal")
        return False


def compare_values(operator: str, left: Any, right: Any) -> bool:
    """
    Упорядочивающее сравнение (<, >, <=, >=).

    Определено только для пары чисел и пары строк; для остальных пар ложно.
    """
    if is_number(left) and is_number(right):
        left, right = _to_comparable_number(left), _to_comparable_number(right)
    elif not (isinstance(left, str) and isinstance(right, str)):
        return False

    if operator == "<":
        return left < right
    if operator == ">":
        return left > right
    if operator == "<=":
        return left <= right
    if operator == ">=":
        return left >= right
    raise ValueError(f"Unknown ordering operator: {operator}")


def contains_value(container: Any, item: Any) -> bool:
    """Оператор contains: подстрока, элемент последовательности или ключ словаря."""
    if isinstance(container, str):
        if item is None:
            return False
        return stringify(item) in container
    if is_sequence(container):
        return any(values_equal(element, item) for element in container)
    if is_mapping(container):
        return isinstance(item, str) and item in container
    return False


def _to_comparable_number(value: Any) -> Any:
    # Decimal и float не сравниваются напрямую корректно
    if isinstance(value, Decimal):
        return float(value)
    return value


# --------------------------------------------------------------------------- #
# Строковое представление
# --------------------------------------------------------------------------- #

def format_number(value: Any) -> str:
    """Число без хвостовых нулей, если оно целое."""
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return str(value.quantize(Decimal(1)))
        return str(value.normalize())
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def stringify(value: Any) -> str:
    """
    Текстовая форма значения для вывода.

    Объекты выводятся через собственное строковое преобразование, если оно есть,
    иначе через диагностический плейсхолдер <TypeName>.
    """
    kind = kind_of(value)

    if kind == ValueKind.NIL:
        return ""
    if kind == ValueKind.BOOL:
        return "true" if value else "false"
    if kind == ValueKind.NUMBER:
        return format_number(value)
    if kind == ValueKind.STRING:
        return value
    if kind == ValueKind.SEQUENCE:
        return "".join(stringify(item) for item in value)

    try:
        if isinstance(value, Resolvable):
            display = value.to_display_string()
            if display is not MISSING and display is not None:
                return str(display)

        if _has_custom_str(value):
            return str(value)
    except Exception as e:
        logger.debug(f"String conversion of {type(value).__name__} raised {type(e).__name__}")
    return f"<{type(value).__name__}>"


def _has_custom_str(value: Any) -> bool:
    """Проверяет, определяет ли тип значения собственный __str__."""
    for klass in type(value).__mro__:
        if klass is object:
            return False
        if "__str__" in klass.__dict__:
            return True
    return False


# --------------------------------------------------------------------------- #
# Доступ к членам
# --------------------------------------------------------------------------- #

def get_member(value: Any, segment: str) -> Any:
    """
    Возвращает член значения по сегменту пути.

    Returns:
        Найденное значение; None, если у словаря/коллекции такого члена нет;
        MISSING, если член не найден на объекте
    """
    value = normalize(value)
    kind = kind_of(value)

    if kind == ValueKind.MAPPING:
        if segment in value:
            return normalize(value[segment])
        return _pseudo_field(value, segment)

    if kind == ValueKind.SEQUENCE:
        index = _parse_index(segment)
        if index is not None:
            if -len(value) <= index < len(value):
                return normalize(value[index])
            return None
        return _pseudo_field(value, segment)

    if kind == ValueKind.STRING:
        return _pseudo_field(value, segment)

    if kind == ValueKind.OBJECT:
        return normalize(_get_object_member(value, segment))

    return None


def _parse_index(segment: str) -> Any:
    try:
        return int(segment)
    except ValueError:
        return None


def _pseudo_field(collection: Any, segment: str) -> Any:
    """
    size для строк, последовательностей и словарей;
    first/last для строк и последовательностей (у словаря порядок не значим).
    """
    if segment == "size":
        return len(collection)
    if (isinstance(collection, str) or is_sequence(collection)) and segment in ("first", "last"):
        if not collection:
            return None
        return normalize(collection[0] if segment == "first" else collection[-1])
    return None


def _get_object_member(obj: Any, name: str) -> Any:
    """
    Доступ к полю, затем к методу без аргументов.

    Закрытые члены (начинающиеся с '_') шаблону не видны.
    """
    if not name or name.startswith("_"):
        return MISSING

    if isinstance(obj, Resolvable):
        result = obj.get_field(name)
        if result is MISSING:
            result = obj.call_method(name)
        return result

    attr_name = _find_attribute_name(obj, name)
    if attr_name is None:
        return MISSING

    try:
        attr = getattr(obj, attr_name)
    except Exception as e:
        logger.debug(f"Attribute '{attr_name}' of {type(obj).__name__} raised {type(e).__name__}")
        return MISSING

    if inspect.ismethod(attr) or inspect.isbuiltin(attr):
        if not _accepts_no_arguments(attr):
            return MISSING
        try:
            return attr()
        except Exception as e:
            logger.debug(f"Method '{attr_name}' of {type(obj).__name__} raised {type(e).__name__}")
            return MISSING

    return attr


def _find_attribute_name(obj: Any, name: str) -> Any:
    """Точное имя атрибута либо совпадение без учёта регистра."""
    try:
        if hasattr(obj, name):
            return name
    except Exception as e:
        logger.debug(f"Attribute '{name}' of {type(obj).__name__} raised {type(e).__name__}")
        return None
    lowered = name.lower()
    for candidate in dir(obj):
        if not candidate.startswith("_") and candidate.lower() == lowered:
            return candidate
    return None


def _accepts_no_arguments(method: Any) -> bool:
    try:
        signature = inspect.signature(method)
    except (TypeError, ValueError):
        return False
    return all(
        param.default is not inspect.Parameter.empty
        or param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
        for param in signature.parameters.values()
    )


__all__ = [
    "MISSING",
    "ValueKind",
    "Resolvable",
    "UnresolvedPath",
    "is_number",
    "is_sequence",
    "is_mapping",
    "kind_of",
    "normalize",
    "is_truthy",
    "values_equal",
    "compare_values",
    "contains_value",
    "format_number",
    "stringify",
    "get_member",
]
