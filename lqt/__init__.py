"""
Шаблонизатор в стиле Liquid.

Компилирует текст с тегами вывода {{ ... }} и блочными тегами {% ... %}
в неизменяемый шаблон и рендерит его на произвольных данных.

    >>> from lqt import parse
    >>> parse("hello {{ name | capitalize }}").render_string({"name": "leto"})
    'hello Leto'
"""

from __future__ import annotations

from .config import ParseOptions, load_options
from .context import RenderContext
from .errors import ConfigError, LexError, LqtUserError, ParseError, ParseErrorKind
from .filters import FilterRegistry, get_registry, register_filter
from .parser import register_tag
from .template import Template, parse, parse_file
from .values import MISSING, Resolvable, UnresolvedPath

__all__ = [
    # Основной API
    "parse",
    "parse_file",
    "Template",
    "ParseOptions",
    "load_options",

    # Расширение
    "FilterRegistry",
    "get_registry",
    "register_filter",
    "register_tag",
    "RenderContext",
    "Resolvable",
    "MISSING",
    "UnresolvedPath",

    # Исключения
    "LqtUserError",
    "LexError",
    "ParseError",
    "ParseErrorKind",
    "ConfigError",
]
