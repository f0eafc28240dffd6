"""
Лексер для выражений внутри тегов.

Выполняет токенизацию содержимого тега, разбивая его на значимые элементы:
- Строковые и числовые литералы
- Ключевые слова (and, or, contains, true, false, nil)
- Идентификаторы (сегменты путей переменных, имена фильтров)
- Операторы сравнения и символы (. | : ,)
- Пробелы (игнорируются)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from ..errors import ParseError, ParseErrorKind


@dataclass
class Token:
    """
    Токен выражения.

    Attributes:
        type: Тип токена (STRING, NUMBER, KEYWORD, IDENTIFIER, OPERATOR, SYMBOL, EOF)
        value: Значение токена (для STRING без кавычек)
        position: Позиция в строке выражения
    """
    type: str
    value: str
    position: int

    def __repr__(self):
        return f"Token({self.type}, '{self.value}', pos={self.position})"


class ExpressionLexer:
    """
    Лексер для разбиения выражения на токены.
    """

    # Спецификация токенов: (regex_pattern, token_type, ignore_flag)
    TOKEN_SPECS = [
        (r'\s+', 'WHITESPACE', True),

        (r'"[^"]*"', 'STRING', False),
        (r"'[^']*'", 'STRING', False),

        # Операторы (двухсимвольные раньше односимвольных)
        (r'==|!=|<>|<=|>=|<|>', 'OPERATOR', False),

        (r'-?\d+\.\d+', 'NUMBER', False),
        (r'-?\d+', 'NUMBER', False),

        (r'[.|:,=]', 'SYMBOL', False),

        # Идентификаторы; ключевые слова определяются после захвата
        (r'[A-Za-z_][\w-]*\??', 'IDENTIFIER', False),

        (r'.', 'UNKNOWN', False),
    ]

    # Целочисленный сегмент пути после точки: colors.0.1
    INDEX_PATTERN = re.compile(r'\d+')

    KEYWORDS = {
        'and', 'or', 'contains', 'true', 'false', 'nil', 'null',
    }

    def __init__(self):
        self._compiled_patterns = [
            (re.compile(pattern), token_type, ignore)
            for pattern, token_type, ignore in self.TOKEN_SPECS
        ]

    def tokenize(self, text: str) -> List[Token]:
        """
        Разбивает строку на токены.

        Args:
            text: Содержимое тега или выражения

        Returns:
            Список токенов, включая EOF в конце

        Raises:
            ParseError: При обнаружении неизвестного символа или незакрытой строки
        """
        tokens: List[Token] = []
        position = 0

        while position < len(text):
            if tokens and tokens[-1].type == 'SYMBOL' and tokens[-1].value == '.':
                match = self.INDEX_PATTERN.match(text, position)
                if match:
                    tokens.append(Token(type='NUMBER', value=match.group(0), position=position))
                    position = match.end()
                    continue

            for pattern, token_type, ignore in self._compiled_patterns:
                match = pattern.match(text, position)
                if not match:
                    continue

                value = match.group(0)
                if not ignore:
                    tokens.append(self._make_token(token_type, value, position))
                position = match.end()
                break

        tokens.append(Token(type='EOF', value='', position=position))
        return tokens

    def _make_token(self, token_type: str, value: str, position: int) -> Token:
        if token_type == 'UNKNOWN':
            if value in ('"', "'"):
                raise ParseError(
                    ParseErrorKind.MALFORMED_EXPRESSION, "Unterminated string literal", position
                )
            raise ParseError(
                ParseErrorKind.MALFORMED_EXPRESSION, f"Unexpected character '{value}'", position
            )

        if token_type == 'STRING':
            return Token(type='STRING', value=value[1:-1], position=position)

        if token_type == 'IDENTIFIER' and value in self.KEYWORDS:
            return Token(type='KEYWORD', value=value, position=position)

        return Token(type=token_type, value=value, position=position)


__all__ = ["Token", "ExpressionLexer"]
