"""
Скомпилированный шаблон и точки входа parse()/parse_file().
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .config import ParseOptions, coerce_options
from .context import make_context
from .nodes import NodeSequence, format_tree
from .parser import TemplateParser
from .renderer import TemplateRenderer

logger = logging.getLogger(__name__)

OptionsLike = Optional[Union[ParseOptions, Mapping[str, Any]]]


class Template:
    """
    Скомпилированный шаблон: неизменяемая последовательность узлов верхнего уровня.

    Рендеринг не изменяет шаблон, поэтому один экземпляр можно
    рендерить одновременно из нескольких потоков.
    """

    __slots__ = ("_code", "_placeholders")

    def __init__(self, code: NodeSequence, placeholders: bool = True):
        self._code = tuple(code)
        self._placeholders = placeholders

    @property
    def code(self) -> NodeSequence:
        """Узлы верхнего уровня (только для чтения)."""
        return self._code

    def render(self, data: Optional[Mapping[str, Any]] = None) -> bytes:
        """
        Рендерит шаблон в байты UTF-8.

        Args:
            data: Входные данные; None или пустой словарь допустимы
        """
        return self.render_string(data).encode("utf-8")

    def render_string(self, data: Optional[Mapping[str, Any]] = None) -> str:
        """Рендерит шаблон в строку."""
        context = make_context(data, placeholders=self._placeholders)
        return TemplateRenderer(context).render(self._code)

    def dump(self) -> str:
        """Дерево узлов для отладки."""
        return format_tree(self._code)

    def __repr__(self) -> str:
        return f"Template({len(self._code)} nodes)"


def parse(source: Union[str, bytes], options: OptionsLike = None) -> Template:
    """
    Компилирует исходный текст в шаблон.

    Args:
        source: Исходный текст шаблона
        options: ParseOptions, словарь опций или None для опций по умолчанию

    Returns:
        Скомпилированный шаблон

    Raises:
        LexError: Незакрытый разделитель
        ParseError: Синтаксическая ошибка
        ConfigError: Некорректные опции
    """
    if isinstance(source, bytes):
        source = source.decode("utf-8")

    parse_options = coerce_options(options)
    parser = TemplateParser(
        source,
        filters=parse_options.filter_registry(),
        tags=parse_options.tag_table(),
    )
    code = parser.parse()

    return Template(code, placeholders=parse_options.placeholders)


def parse_file(path: Union[str, Path], options: OptionsLike = None, encoding: str = "utf-8") -> Template:
    """
    Читает файл шаблона и компилирует его.

    Raises:
        OSError: Если файл не читается
        LexError, ParseError: При ошибках в шаблоне
    """
    path = Path(path)
    logger.debug(f"Parsing template file {path}")
    return parse(path.read_text(encoding=encoding), options)


__all__ = ["Template", "parse", "parse_file"]
