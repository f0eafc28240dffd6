"""
Парсер тегов шаблона с рекурсивным спуском.

Преобразует последовательность сегментов лексера в дерево узлов.
Каждый блочный тег разбирает своё тело до собственного закрывающего
тега (или следующего ключевого слова ветки) на том же уровне вложенности.
Закрывающие теги чужого семейства отвергаются.

Ошибки разбора прерывают компиляцию целиком: частичные шаблоны не создаются.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

from .errors import ParseError, ParseErrorKind
from .expressions.model import Negation
from .expressions.parser import ExpressionParser
from .lexer import Segment, SegmentType, TemplateLexer
from .nodes import (
    Assign,
    Branch,
    Capture,
    Conditional,
    CustomTag,
    Literal,
    NodeSequence,
    Output,
    Switch,
    TagFunction,
    TemplateNode,
    WhenClause,
)

logger = logging.getLogger(__name__)

# Открывающие теги, встроенные в движок
BUILTIN_TAGS = frozenset({"if", "unless", "case", "capture", "assign", "comment", "raw"})

# Теги, допустимые только внутри своего блока
INNER_TAGS = frozenset({
    "elseif", "elsif", "else", "when",
    "endif", "endunless", "endcase", "endcapture", "endcomment", "endraw",
})

RESERVED_TAGS = BUILTIN_TAGS | INNER_TAGS

_TAG_PATTERN = re.compile(r'^(\w+)(?:\s+(.*))?$', re.DOTALL)

# Имя пользовательского тега должно целиком совпадать с именем в _TAG_PATTERN
TAG_NAME_PATTERN = re.compile(r'^[A-Za-z_]\w*$')
_NAME_PATTERN = re.compile(r'^[A-Za-z_][\w-]*$')


class _Terminator:
    """Тег, завершивший разбор тела блока."""

    def __init__(self, name: str, arguments: str, segment: Segment, arguments_offset: int):
        self.name = name
        self.arguments = arguments
        self.segment = segment
        self.arguments_offset = arguments_offset


class TemplateParser:
    """
    Парсер шаблона.

    Разбирает теги if/unless, case, capture, assign, comment и
    пользовательские строчные теги.
    """

    def __init__(
        self,
        source: str,
        filters: Any = None,
        tags: Optional[Mapping[str, TagFunction]] = None,
    ):
        """
        Args:
            source: Исходный текст шаблона
            filters: Реестр фильтров (по умолчанию глобальный)
            tags: Пользовательские строчные теги (по умолчанию глобальные)
        """
        self.source = source
        self.expressions = ExpressionParser(filters)
        self.tags: Mapping[str, TagFunction] = registered_tags() if tags is None else tags
        self._segments: List[Segment] = []
        self._index = 0

    def parse(self) -> NodeSequence:
        """
        Парсит шаблон в последовательность узлов верхнего уровня.

        Raises:
            LexError: Незакрытый разделитель
            ParseError: Синтаксическая ошибка
        """
        self._segments = TemplateLexer(self.source).tokenize()
        self._index = 0

        nodes, terminator = self._parse_body(frozenset())
        assert terminator is None

        logger.debug(f"Parsed template into {len(nodes)} top-level nodes")
        return nodes

    # Тела блоков

    def _parse_body(self, stop: FrozenSet[str]) -> Tuple[NodeSequence, Optional[_Terminator]]:
        """
        Собирает узлы до одного из тегов stop.

        Returns:
            Кортеж (узлы, завершивший тег) или (узлы, None) при конце входа
        """
        nodes: List[TemplateNode] = []

        while self._index < len(self._segments):
            segment = self._segments[self._index]
            self._index += 1

            if segment.type == SegmentType.TEXT:
                nodes.append(Literal(text=segment.content))
                continue

            if segment.type == SegmentType.OUTPUT:
                nodes.append(self._parse_output(segment))
                continue

            name, arguments, arguments_offset = self._split_tag(segment)
            if name in stop:
                return tuple(nodes), _Terminator(name, arguments, segment, arguments_offset)

            node = self._parse_tag(name, arguments, segment, arguments_offset)
            if node is not None:
                nodes.append(node)

        return tuple(nodes), None

    def _parse_tag(self, name: str, arguments: str, segment: Segment, offset: int) -> Optional[TemplateNode]:
        if name == "if":
            return self._parse_conditional(name, arguments, segment, offset)
        if name == "unless":
            return self._parse_conditional(name, arguments, segment, offset)
        if name == "case":
            return self._parse_case(arguments, segment, offset)
        if name == "capture":
            return self._parse_capture(arguments, segment, offset)
        if name == "assign":
            return self._parse_assign(arguments, offset)
        if name == "comment":
            self._skip_comment(segment)
            return None

        if name == "raw":
            raise self._error(ParseErrorKind.UNEXPECTED_TOKEN, "Tag 'raw' takes no arguments", offset)
        if name in INNER_TAGS:
            raise self._error(ParseErrorKind.UNMATCHED_TAG, f"Unexpected '{name}' tag", segment.position)

        function = self.tags.get(name)
        if function is not None:
            return CustomTag(name=name, arguments=arguments, function=function)

        raise self._error(ParseErrorKind.UNEXPECTED_TOKEN, f"Unknown tag '{name}'", segment.position)

    # Теги

    def _parse_output(self, segment: Segment) -> Output:
        expression, filters = self._expression(
            self.expressions.parse_output, segment.content, segment.content_position
        )
        return Output(expression=expression, filters=filters)

    def _parse_conditional(self, tag: str, arguments: str, segment: Segment, offset: int) -> Conditional:
        """
        if COND ... [elseif COND ...]* [else ...] endif
        unless COND ... [else ...] endunless
        """
        end_tag = f"end{tag}"
        branch_tags = frozenset({"elseif", "elsif", "else"}) if tag == "if" else frozenset({"else"})

        condition = self._expression(self.expressions.parse_condition, arguments, offset)
        if tag == "unless":
            condition = Negation(condition)

        branches: List[Branch] = []
        stop = branch_tags | {end_tag}

        while True:
            body, terminator = self._parse_body(stop)
            if terminator is None:
                raise self._error(
                    ParseErrorKind.UNMATCHED_TAG,
                    f"Unclosed '{tag}' tag: expected '{end_tag}'",
                    segment.position,
                )

            branches.append(Branch(condition=condition, body=body))

            if terminator.name == end_tag:
                self._expect_no_arguments(terminator)
                break

            if terminator.name == "else":
                self._expect_no_arguments(terminator)
                condition = None
                stop = frozenset({end_tag})
            else:
                condition = self._expression(
                    self.expressions.parse_condition, terminator.arguments, terminator.arguments_offset
                )

        return Conditional(tag=tag, branches=tuple(branches))

    def _parse_case(self, arguments: str, segment: Segment, offset: int) -> Switch:
        """
        case SUBJECT [when V1 or V2 ...]* [else ...] endcase
        """
        subject = self._expression(self.expressions.parse_subject, arguments, offset)

        cases: List[WhenClause] = []
        else_body: Optional[NodeSequence] = None

        # Содержимое между case и первым when не выводится
        leading, terminator = self._parse_body(frozenset({"when", "else", "endcase"}))
        if leading:
            logger.debug(f"Discarded {len(leading)} nodes between 'case' and first 'when'")

        while True:
            if terminator is None:
                raise self._error(
                    ParseErrorKind.UNMATCHED_TAG, "Unclosed 'case' tag: expected 'endcase'", segment.position
                )

            if terminator.name == "endcase":
                self._expect_no_arguments(terminator)
                break

            if terminator.name == "else":
                self._expect_no_arguments(terminator)
                else_body, terminator = self._parse_body(frozenset({"endcase"}))
                continue

            values = self._expression(
                self.expressions.parse_values, terminator.arguments, terminator.arguments_offset
            )
            body, terminator = self._parse_body(frozenset({"when", "else", "endcase"}))
            cases.append(WhenClause(values=values, body=body))

        return Switch(subject=subject, cases=tuple(cases), else_body=else_body)

    def _parse_capture(self, arguments: str, segment: Segment, offset: int) -> Capture:
        """capture NAME ... endcapture"""
        name = arguments.strip()
        if not _NAME_PATTERN.match(name):
            raise self._error(
                ParseErrorKind.MALFORMED_EXPRESSION,
                f"Invalid capture variable name '{name}'",
                offset,
            )

        body, terminator = self._parse_body(frozenset({"endcapture"}))
        if terminator is None:
            raise self._error(
                ParseErrorKind.UNMATCHED_TAG, "Unclosed 'capture' tag: expected 'endcapture'", segment.position
            )
        self._expect_no_arguments(terminator)

        return Capture(name=name, body=body)

    def _parse_assign(self, arguments: str, offset: int) -> Assign:
        """assign NAME = expr | filter"""
        name, expression, filters = self._expression(self.expressions.parse_assignment, arguments, offset)
        return Assign(name=name, expression=expression, filters=filters)

    def _skip_comment(self, segment: Segment) -> None:
        """Пропускает всё до парного endcomment, не разбирая вложенные теги."""
        depth = 1

        while self._index < len(self._segments):
            current = self._segments[self._index]
            self._index += 1

            if current.type != SegmentType.BLOCK:
                continue

            name = current.content.split(None, 1)[0] if current.content else ""
            if name == "comment":
                depth += 1
            elif name == "endcomment":
                depth -= 1
                if depth == 0:
                    return

        raise self._error(
            ParseErrorKind.UNMATCHED_TAG, "Unclosed 'comment' tag: expected 'endcomment'", segment.position
        )

    # Вспомогательные методы

    def _split_tag(self, segment: Segment) -> Tuple[str, str, int]:
        """
        Разделяет содержимое блочного тега на имя и аргументы.

        Returns:
            Кортеж (имя, аргументы, смещение аргументов в исходном тексте)
        """
        match = _TAG_PATTERN.match(segment.content)
        if match is None:
            if not segment.content:
                message = "Empty tag"
            else:
                message = f"Malformed tag '{segment.content}'"
            raise self._error(ParseErrorKind.UNEXPECTED_TOKEN, message, segment.position)

        arguments = match.group(2) or ""
        arguments_offset = segment.content_position + (match.start(2) if match.group(2) is not None else len(segment.content))
        return match.group(1), arguments.strip(), arguments_offset

    def _expect_no_arguments(self, terminator: _Terminator) -> None:
        if terminator.arguments:
            raise self._error(
                ParseErrorKind.UNEXPECTED_TOKEN,
                f"Tag '{terminator.name}' takes no arguments",
                terminator.arguments_offset,
            )

    def _expression(self, parse: Callable[[str], Any], text: str, offset: int) -> Any:
        """Разбирает выражение, переводя позиции ошибок в координаты шаблона."""
        try:
            return parse(text)
        except ParseError as e:
            raise e.relocate(offset, self.source) from None

    def _error(self, kind: ParseErrorKind, message: str, position: int) -> ParseError:
        return ParseError(kind, message, position, self.source)


# --------------------------------------------------------------------------- #
# Глобальный реестр пользовательских тегов
# --------------------------------------------------------------------------- #

_registered_tags: Dict[str, TagFunction] = {}


def register_tag(name: str, function: TagFunction) -> None:
    """
    Регистрирует пользовательский строчный тег для всех шаблонов процесса.

    Вызывать только на этапе инициализации, до разбора шаблонов.
    Теги из ParseOptions перекрывают одноимённые глобальные.

    Raises:
        ValueError: Если имя некорректно или занято встроенным тегом
        TypeError: Если function не вызываемый объект
    """
    if not isinstance(name, str) or not TAG_NAME_PATTERN.match(name):
        raise ValueError(f"Invalid tag name: {name!r}")
    if name in RESERVED_TAGS:
        raise ValueError(f"Tag '{name}' is built in and cannot be redefined")
    if not callable(function):
        raise TypeError(f"Tag '{name}' must be callable, got {type(function).__name__}")

    if name in _registered_tags and _registered_tags[name] is not function:
        logger.warning(f"Tag '{name}' overwrites existing tag")
    _registered_tags[name] = function
    logger.debug(f"Registered tag: {name}")


def registered_tags() -> Dict[str, TagFunction]:
    """Копия глобальных пользовательских тегов."""
    return dict(_registered_tags)


def parse_template(
    source: str,
    filters: Any = None,
    tags: Optional[Mapping[str, TagFunction]] = None,
) -> NodeSequence:
    """
    Удобная функция для разбора шаблона в последовательность узлов.

    Raises:
        LexError: Незакрытый разделитель
        ParseError: Синтаксическая ошибка
    """
    return TemplateParser(source, filters, tags).parse()


__all__ = [
    "BUILTIN_TAGS",
    "INNER_TAGS",
    "RESERVED_TAGS",
    "TAG_NAME_PATTERN",
    "TemplateParser",
    "register_tag",
    "registered_tags",
    "parse_template",
]
