"""
Вычислитель выражений шаблона.

Проходит по AST выражения и вычисляет его значение в контексте рендеринга.
Ошибки данных (отсутствующие переменные, несравнимые операнды) не
выбрасываются, а отражаются в результате.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, cast

from ..context import RenderContext
from ..values import (
    MISSING,
    UnresolvedPath,
    compare_values,
    contains_value,
    get_member,
    is_truthy,
    values_equal,
)
from .model import (
    BooleanExpression,
    Comparison,
    Expression,
    ExpressionType,
    FilterCall,
    LiteralExpression,
    Negation,
    VariablePath,
)

logger = logging.getLogger(__name__)


class EvaluationError(Exception):
    """Неизвестный тип выражения (ошибка программиста, а не данных)."""
    pass


class ExpressionEvaluator:
    """
    Вычислитель выражений.

    Принимает AST выражения и контекст рендеринга, возвращает значение модели.
    """

    def __init__(self, context: RenderContext):
        """
        Args:
            context: Контекст с переменными текущего вызова рендеринга
        """
        self.context = context

    def evaluate(self, expression: Expression) -> Any:
        """
        Вычисляет значение выражения.

        Raises:
            EvaluationError: Для неизвестного типа выражения
        """
        expression_type = expression.get_type()

        if expression_type == ExpressionType.LITERAL:
            return cast(LiteralExpression, expression).value
        elif expression_type == ExpressionType.VARIABLE:
            return self._resolve_path(cast(VariablePath, expression))
        elif expression_type == ExpressionType.COMPARISON:
            return self._evaluate_comparison(cast(Comparison, expression))
        elif expression_type == ExpressionType.AND:
            return self._evaluate_and(cast(BooleanExpression, expression))
        elif expression_type == ExpressionType.OR:
            return self._evaluate_or(cast(BooleanExpression, expression))
        elif expression_type == ExpressionType.NOT:
            return not self.is_true(cast(Negation, expression).operand)
        else:
            raise EvaluationError(f"Unknown expression type: {expression_type}")

    def is_true(self, expression: Expression) -> bool:
        """Вычисляет выражение как условие."""
        return is_truthy(self.evaluate(expression))

    def evaluate_filtered(self, expression: Expression, filters: Iterable[FilterCall]) -> Any:
        """
        Вычисляет выражение и пропускает результат через фильтры слева направо.

        Исключение в пользовательском фильтре не прерывает рендеринг:
        значение проходит дальше без изменений.
        """
        value = self.evaluate(expression)

        for call in filters:
            try:
                if call.argument is None:
                    value = call.function(value)
                else:
                    value = call.function(value, self.evaluate(call.argument))
            except Exception as e:
                logger.warning(f"Filter '{call.name}' failed with {type(e).__name__}: {e}; value left unchanged")

        return value

    def _resolve_path(self, path: VariablePath) -> Any:
        """
        Разрешает путь переменной сегмент за сегментом.

        - nil на любом шаге даёт nil
        - отсутствующий ключ словаря даёт nil
        - отсутствующий член объекта даёт плейсхолдер {{PATH}}
        """
        root, *rest = path.segments

        value = self.context.get(root)
        if value is MISSING:
            return None

        for segment in rest:
            if value is None:
                return None

            member = get_member(value, segment)
            if member is MISSING:
                if self.context.placeholders:
                    return UnresolvedPath(path.segments)
                return None
            value = member

        return value

    def _evaluate_comparison(self, comparison: Comparison) -> bool:
        left = self.evaluate(comparison.left)
        right = self.evaluate(comparison.right)
        operator = comparison.operator

        if operator == "==":
            return values_equal(left, right)
        if operator == "!=":
            return not values_equal(left, right)
        if operator == "contains":
            return contains_value(left, right)
        return compare_values(operator, left, right)

    def _evaluate_and(self, condition: BooleanExpression) -> bool:
        if not self.is_true(condition.left):
            return False
        return self.is_true(condition.right)

    def _evaluate_or(self, condition: BooleanExpression) -> bool:
        if self.is_true(condition.left):
            return True
        return self.is_true(condition.right)


__all__ = ["ExpressionEvaluator", "EvaluationError"]
