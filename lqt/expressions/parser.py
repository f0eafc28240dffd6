"""
Парсер выражений шаблона с рекурсивным спуском.

Строит AST выражения из последовательности токенов.

Грамматика:
chain       → comparison (("and" | "or") chain)?
comparison  → primary (OPERATOR primary)?
primary     → STRING | NUMBER | "true" | "false" | "nil" | path
path        → IDENTIFIER ("." segment)*
output      → chain filter*
filter      → "|" IDENTIFIER (":" primary)?
values      → primary (("or" | ",") primary)*
assignment  → IDENTIFIER "=" output

Логические операторы имеют одинаковый приоритет и группируются
справа налево: a and b or c == a and (b or c).
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

from ..errors import ParseError, ParseErrorKind
from .lexer import ExpressionLexer, Token
from .model import (
    BooleanExpression,
    Comparison,
    Expression,
    ExpressionType,
    FilterCall,
    LiteralExpression,
    VariablePath,
)

_KEYWORD_LITERALS = {
    "true": True,
    "false": False,
    "nil": None,
    "null": None,
}


class ExpressionParser:
    """
    Парсер выражений с рекурсивным спуском.

    Позиции в ошибках отсчитываются от начала разбираемой строки.
    """

    def __init__(self, filters: Any = None):
        """
        Args:
            filters: Источник функций фильтров с методом get(name).
                     По умолчанию используется глобальный реестр.
        """
        if filters is None:
            from ..filters import get_registry
            filters = get_registry()
        self.filters = filters
        self.lexer = ExpressionLexer()
        self._tokens: List[Token] = []
        self._position = 0
        self._what = "expression"

    # Точки входа

    def parse_condition(self, text: str) -> Expression:
        """
        Разбирает условие тегов if/elseif/unless.

        Raises:
            ParseError: При синтаксической ошибке
        """
        self._start(text, "condition")
        result = self._parse_chain()
        self._expect_end()
        return result

    def parse_output(self, text: str) -> Tuple[Expression, Tuple[FilterCall, ...]]:
        """
        Разбирает содержимое тега вывода: выражение и цепочку фильтров.
        """
        self._start(text, "output expression")
        expression = self._parse_chain()
        filters = self._parse_filters()
        self._expect_end()
        return expression, filters

    def parse_subject(self, text: str) -> Expression:
        """Разбирает одиночное первичное выражение (субъект case)."""
        self._start(text, "case subject")
        result = self._parse_primary()
        self._expect_end()
        return result

    def parse_values(self, text: str) -> Tuple[Expression, ...]:
        """Разбирает список значений when: 1 or 123, 'abc'."""
        self._start(text, "when value")
        values = [self._parse_primary()]
        while self._match_keyword("or") or self._match_symbol(","):
            values.append(self._parse_primary())
        self._expect_end()
        return tuple(values)

    def parse_assignment(self, text: str) -> Tuple[str, Expression, Tuple[FilterCall, ...]]:
        """Разбирает присваивание: name = expr | filter."""
        self._start(text, "assignment")
        name_token = self._consume("IDENTIFIER", "Expected variable name")
        if not self._match_symbol("="):
            raise self._error("Expected '=' after variable name", self._current_token())
        expression = self._parse_chain()
        filters = self._parse_filters()
        self._expect_end()
        return name_token.value, expression, filters

    # Правила грамматики

    def _parse_chain(self) -> Expression:
        left = self._parse_comparison()

        if self._match_keyword("and"):
            return BooleanExpression(left=left, right=self._parse_chain(), operator=ExpressionType.AND)
        if self._match_keyword("or"):
            return BooleanExpression(left=left, right=self._parse_chain(), operator=ExpressionType.OR)

        return left

    def _parse_comparison(self) -> Expression:
        left = self._parse_primary()

        current = self._current_token()
        if current.type == 'OPERATOR' or (current.type == 'KEYWORD' and current.value == 'contains'):
            self._advance()
            operator = "!=" if current.value == "<>" else current.value
            right = self._parse_primary()
            return Comparison(operator=operator, left=left, right=right)

        return left

    def _parse_primary(self) -> Expression:
        current = self._current_token()

        if current.type == 'STRING':
            self._advance()
            return LiteralExpression(current.value)

        if current.type == 'NUMBER':
            self._advance()
            try:
                number = float(current.value) if "." in current.value else int(current.value)
            except ValueError as e:
                raise self._error(f"Invalid number literal: {e}", current) from None
            return LiteralExpression(number)

        if current.type == 'KEYWORD' and current.value in _KEYWORD_LITERALS:
            self._advance()
            return LiteralExpression(_KEYWORD_LITERALS[current.value])

        if current.type == 'IDENTIFIER':
            return self._parse_path()

        if current.type == 'EOF':
            raise self._error(f"Expected {self._what}, got end of input", current)
        raise self._error(f"Unexpected token '{current.value}'", current,
                          ParseErrorKind.UNEXPECTED_TOKEN)

    def _parse_path(self) -> VariablePath:
        segments = [self._advance().value]

        while self._match_symbol("."):
            current = self._current_token()
            if current.type in ('IDENTIFIER', 'NUMBER', 'KEYWORD'):
                segments.append(self._advance().value)
            else:
                raise self._error("Expected path segment after '.'", current)

        return VariablePath(tuple(segments))

    def _parse_filters(self) -> Tuple[FilterCall, ...]:
        calls: List[FilterCall] = []

        while self._match_symbol("|"):
            name_token = self._consume("IDENTIFIER", "Expected filter name after '|'")
            function = self.filters.get(name_token.value)
            if function is None:
                raise self._error(f"Unknown filter '{name_token.value}'", name_token)

            argument = None
            if self._match_symbol(":"):
                argument = self._parse_primary()

            calls.append(FilterCall(name=name_token.value, argument=argument, function=function))

        return tuple(calls)

    # Вспомогательные методы для работы с токенами

    def _start(self, text: str, what: str) -> None:
        self._what = what
        self._tokens = self.lexer.tokenize(text)
        self._position = 0

        if self._is_at_end():
            raise ParseError(ParseErrorKind.MALFORMED_EXPRESSION, f"Empty {what}", 0)

    def _expect_end(self) -> None:
        if not self._is_at_end():
            current = self._current_token()
            raise self._error(f"Unexpected token '{current.value}'", current,
                              ParseErrorKind.UNEXPECTED_TOKEN)

    def _current_token(self) -> Token:
        if self._position >= len(self._tokens):
            return self._tokens[-1]
        return self._tokens[self._position]

    def _is_at_end(self) -> bool:
        return self._current_token().type == 'EOF'

    def _advance(self) -> Token:
        token = self._current_token()
        if not self._is_at_end():
            self._position += 1
        return token

    def _match_keyword(self, keyword: str) -> bool:
        current = self._current_token()
        if current.type == 'KEYWORD' and current.value == keyword:
            self._advance()
            return True
        return False

    def _match_symbol(self, symbol: str) -> bool:
        current = self._current_token()
        if current.type == 'SYMBOL' and current.value == symbol:
            self._advance()
            return True
        return False

    def _consume(self, token_type: str, error_message: str) -> Token:
        current = self._current_token()
        if current.type == token_type:
            return self._advance()
        raise self._error(error_message, current)

    def _error(
        self,
        message: str,
        token: Token,
        kind: ParseErrorKind = ParseErrorKind.MALFORMED_EXPRESSION,
    ) -> ParseError:
        return ParseError(kind, message, token.position)


def parse_condition(text: str, filters: Optional[Any] = None) -> Expression:
    """
    Удобная функция для разбора условия из строки.

    Raises:
        ParseError: При синтаксической ошибке
    """
    return ExpressionParser(filters).parse_condition(text)


__all__ = ["ExpressionParser", "parse_condition"]
