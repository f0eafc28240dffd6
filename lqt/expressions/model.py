"""
Модели данных для выражений шаблона.

Содержит классы для представления литералов, путей переменных,
сравнений, логических цепочек и вызовов фильтров.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple

from ..values import stringify


class ExpressionType(Enum):
    """Типы выражений."""
    LITERAL = "literal"
    VARIABLE = "variable"
    COMPARISON = "comparison"
    AND = "and"
    OR = "or"
    NOT = "not"  # только для unless, в синтаксисе не выражается


@dataclass(frozen=True)
class Expression(ABC):
    """Базовый абстрактный класс для всех выражений."""

    @abstractmethod
    def get_type(self) -> ExpressionType:
        """Возвращает тип выражения."""
        pass

    def __str__(self) -> str:
        return self._to_string()

    @abstractmethod
    def _to_string(self) -> str:
        pass


@dataclass(frozen=True)
class LiteralExpression(Expression):
    """
    Литерал: 'abc', 123, 1.5, true, false, nil
    """
    value: Any

    def get_type(self) -> ExpressionType:
        return ExpressionType.LITERAL

    def _to_string(self) -> str:
        if isinstance(self.value, str):
            return repr(self.value)
        if self.value is None:
            return "nil"
        return stringify(self.value)


@dataclass(frozen=True)
class VariablePath(Expression):
    """
    Путь переменной: ghola.master

    Сегменты разрешаются во время рендеринга, а не разбора.
    """
    segments: Tuple[str, ...]

    def get_type(self) -> ExpressionType:
        return ExpressionType.VARIABLE

    def _to_string(self) -> str:
        return ".".join(self.segments)


@dataclass(frozen=True)
class Comparison(Expression):
    """
    Сравнение: left op right
    """
    operator: str
    left: Expression
    right: Expression

    def get_type(self) -> ExpressionType:
        return ExpressionType.COMPARISON

    def _to_string(self) -> str:
        return f"{self.left} {self.operator} {self.right}"


@dataclass(frozen=True)
class BooleanExpression(Expression):
    """
    Логическая цепочка: left and right, left or right
    """
    left: Expression
    right: Expression
    operator: ExpressionType  # AND или OR

    def get_type(self) -> ExpressionType:
        return self.operator

    def _to_string(self) -> str:
        op_str = "and" if self.operator == ExpressionType.AND else "or"
        return f"{self.left} {op_str} {self.right}"


@dataclass(frozen=True)
class Negation(Expression):
    """
    Отрицание условия. Строится парсером тегов для unless.
    """
    operand: Expression

    def get_type(self) -> ExpressionType:
        return ExpressionType.NOT

    def _to_string(self) -> str:
        return f"not ({self.operand})"


# Сигнатура фильтра: (значение, [аргумент]) -> значение
FilterFunction = Callable[..., Any]


@dataclass(frozen=True)
class FilterCall:
    """
    Вызов фильтра: | name или | name: arg

    Функция фильтра связывается при разборе, поэтому рендеринг
    не обращается к реестру.
    """
    name: str
    argument: Optional[Expression]
    function: FilterFunction

    def __str__(self) -> str:
        if self.argument is None:
            return self.name
        return f"{self.name}: {self.argument}"


__all__ = [
    "ExpressionType",
    "Expression",
    "LiteralExpression",
    "VariablePath",
    "Comparison",
    "BooleanExpression",
    "Negation",
    "FilterFunction",
    "FilterCall",
]
