"""
AST-узлы скомпилированного шаблона.

Определяет закрытый набор узлов, которые обходит рендерер. Узлы
неизменяемы: тела хранятся в кортежах, поэтому один шаблон можно
рендерить одновременно из нескольких потоков.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from .expressions.model import Expression, FilterCall


@dataclass(frozen=True)
class TemplateNode:
    """Базовый класс для всех узлов шаблона."""
    pass


@dataclass(frozen=True)
class Literal(TemplateNode):
    """
    Обычный текст шаблона.

    Выводится как есть, без обработки.
    """
    text: str


@dataclass(frozen=True)
class Output(TemplateNode):
    """
    Тег вывода {{ expr | filter: arg }}.
    """
    expression: Expression
    filters: Tuple[FilterCall, ...] = ()


@dataclass(frozen=True)
class Branch:
    """
    Ветка условного блока.

    condition = None означает ветку else, которая берётся всегда, если до неё дошли.
    """
    condition: Optional[Expression]
    body: Tuple[TemplateNode, ...]


@dataclass(frozen=True)
class Conditional(TemplateNode):
    """
    Условный блок if/elseif/else и unless/else.

    Для unless условие первой ветки обёрнуто в отрицание.
    """
    tag: str  # "if" или "unless"
    branches: Tuple[Branch, ...]


@dataclass(frozen=True)
class WhenClause:
    """
    Ветка when блока case. Совпадает, если субъект равен любому из значений.
    """
    values: Tuple[Expression, ...]
    body: Tuple[TemplateNode, ...]


@dataclass(frozen=True)
class Switch(TemplateNode):
    """
    Блок case/when/else.
    """
    subject: Expression
    cases: Tuple[WhenClause, ...]
    else_body: Optional[Tuple[TemplateNode, ...]] = None


@dataclass(frozen=True)
class Capture(TemplateNode):
    """
    Блок capture NAME ... endcapture.

    Тело рендерится в отдельный буфер и связывается со строковой переменной.
    В окружающий вывод ничего не попадает.
    """
    name: str
    body: Tuple[TemplateNode, ...]


@dataclass(frozen=True)
class Assign(TemplateNode):
    """
    Тег assign NAME = expr | filter.
    """
    name: str
    expression: Expression
    filters: Tuple[FilterCall, ...] = ()


# Сигнатура пользовательского тега: (аргументы, контекст) -> значение для вывода
TagFunction = Callable[[str, Any], Any]


@dataclass(frozen=True)
class CustomTag(TemplateNode):
    """
    Пользовательский строчный тег {% name args %}.
    """
    name: str
    arguments: str
    function: TagFunction


# Тело блока или шаблона целиком
NodeSequence = Tuple[TemplateNode, ...]


def collect_literal_text(nodes: NodeSequence) -> str:
    """
    Собирает текст всех Literal-узлов во всех ветках (для тестирования и отладки).
    """
    parts: List[str] = []

    def collect_from_node(node: TemplateNode) -> None:
        if isinstance(node, Literal):
            parts.append(node.text)
        elif isinstance(node, Conditional):
            for branch in node.branches:
                for child in branch.body:
                    collect_from_node(child)
        elif isinstance(node, Switch):
            for clause in node.cases:
                for child in clause.body:
                    collect_from_node(child)
            for child in node.else_body or ():
                collect_from_node(child)
        elif isinstance(node, Capture):
            for child in node.body:
                collect_from_node(child)

    for node in nodes:
        collect_from_node(node)

    return "".join(parts)


def format_tree(nodes: NodeSequence, indent: int = 0) -> str:
    """Форматирует AST как дерево для отладки."""
    lines = []
    prefix = "  " * indent

    for node in nodes:
        if isinstance(node, Literal):
            text_preview = repr(node.text[:50] + "..." if len(node.text) > 50 else node.text)
            lines.append(f"{prefix}Literal({text_preview})")
        elif isinstance(node, Output):
            pipeline = "".join(f" | {call}" for call in node.filters)
            lines.append(f"{prefix}Output({node.expression}{pipeline})")
        elif isinstance(node, Conditional):
            lines.append(f"{prefix}Conditional({node.tag})")
            for branch in node.branches:
                label = "else" if branch.condition is None else f"when {branch.condition}"
                lines.append(f"{prefix}  {label}:")
                if branch.body:
                    lines.append(format_tree(branch.body, indent + 2))
        elif isinstance(node, Switch):
            lines.append(f"{prefix}Switch({node.subject})")
            for clause in node.cases:
                values = " or ".join(str(value) for value in clause.values)
                lines.append(f"{prefix}  when {values}:")
                if clause.body:
                    lines.append(format_tree(clause.body, indent + 2))
            if node.else_body is not None:
                lines.append(f"{prefix}  else:")
                if node.else_body:
                    lines.append(format_tree(node.else_body, indent + 2))
        elif isinstance(node, Capture):
            lines.append(f"{prefix}Capture({node.name})")
            if node.body:
                lines.append(format_tree(node.body, indent + 1))
        elif isinstance(node, Assign):
            pipeline = "".join(f" | {call}" for call in node.filters)
            lines.append(f"{prefix}Assign({node.name} = {node.expression}{pipeline})")
        elif isinstance(node, CustomTag):
            lines.append(f"{prefix}CustomTag({node.name} {node.arguments!r})")
        else:
            lines.append(f"{prefix}{type(node).__name__}")

    return "\n".join(lines)


__all__ = [
    "TemplateNode",
    "Literal",
    "Output",
    "Branch",
    "Conditional",
    "WhenClause",
    "Switch",
    "Capture",
    "Assign",
    "TagFunction",
    "CustomTag",
    "NodeSequence",
    "collect_literal_text",
    "format_tree",
]
