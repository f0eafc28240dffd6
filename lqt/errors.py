"""
Base exceptions for user-facing errors.

All expected errors that a template author or integrator can fix
(malformed template source, invalid options) inherit from LqtUserError.

Programming errors and bugs should NOT inherit from LqtUserError;
they will propagate with full tracebacks.
"""

from __future__ import annotations

import enum
from typing import Optional, Tuple


class LqtUserError(Exception):
    """
    Base class for all user-facing errors of the template engine.
    """
    pass


def line_and_column(source: str, position: int) -> Tuple[int, int]:
    """
    Вычисляет номер строки и колонки (с 1) для смещения в исходном тексте.
    """
    position = max(0, min(position, len(source)))
    line = source.count("\n", 0, position) + 1
    last_newline = source.rfind("\n", 0, position)
    column = position - last_newline
    return line, column


class LexError(LqtUserError):
    """Незакрытый разделитель `{{` или `{%`."""

    def __init__(self, message: str, position: int, source: str = ""):
        self.message = message
        self.position = position
        self.line, self.column = line_and_column(source, position)
        super().__init__(f"{message} at {self.line}:{self.column}")


class ParseErrorKind(enum.Enum):
    """Категории ошибок синтаксического анализа."""
    UNEXPECTED_TOKEN = "unexpected_token"
    UNMATCHED_TAG = "unmatched_tag"
    MALFORMED_EXPRESSION = "malformed_expression"


class ParseError(LqtUserError):
    """
    Ошибка синтаксического анализа шаблона.

    Attributes:
        kind: Категория ошибки
        message: Текст без позиционной информации
        position: Смещение в исходном тексте шаблона
        line, column: Позиция (с 1), если известен исходный текст
    """

    def __init__(
        self,
        kind: ParseErrorKind,
        message: str,
        position: int,
        source: Optional[str] = None,
    ):
        self.kind = kind
        self.message = message
        self.position = position
        if source is not None:
            self.line, self.column = line_and_column(source, position)
            where = f"{self.line}:{self.column}"
        else:
            self.line = self.column = None
            where = f"position {position}"
        super().__init__(f"{message} at {where}")

    def relocate(self, offset: int, source: str) -> "ParseError":
        """
        Возвращает копию ошибки, сдвинутую на смещение тега в шаблоне.

        Выражения разбираются отдельно от шаблона, поэтому позиции внутри
        выражения нужно перевести в координаты всего исходного текста.
        """
        return ParseError(self.kind, self.message, offset + self.position, source)


class ConfigError(LqtUserError):
    """Некорректные опции парсинга или файл конфигурации."""
    pass


__all__ = [
    "LqtUserError",
    "LexError",
    "ParseError",
    "ParseErrorKind",
    "ConfigError",
    "line_and_column",
]
