"""
Выражения внутри тегов: лексер, модель, парсер и вычислитель.
"""

from .model import (
    Expression,
    ExpressionType,
    LiteralExpression,
    VariablePath,
    Comparison,
    BooleanExpression,
    Negation,
    FilterCall,
    FilterFunction,
)
from .parser import ExpressionParser, parse_condition
from .evaluator import ExpressionEvaluator, EvaluationError

__all__ = [
    "Expression",
    "ExpressionType",
    "LiteralExpression",
    "VariablePath",
    "Comparison",
    "BooleanExpression",
    "Negation",
    "FilterCall",
    "FilterFunction",
    "ExpressionParser",
    "parse_condition",
    "ExpressionEvaluator",
    "EvaluationError",
]
