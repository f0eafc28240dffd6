"""
Рендерер скомпилированного шаблона.

Обходит узлы шаблона строго последовательно (слева направо, в глубину)
и пишет результат в буфер. Шаблон при этом не изменяется: всё
состояние вызова живёт в RenderContext и буферах.
"""

from __future__ import annotations

import logging
from typing import List

from .context import RenderContext
from .expressions.evaluator import ExpressionEvaluator
from .nodes import (
    Assign,
    Capture,
    Conditional,
    CustomTag,
    Literal,
    NodeSequence,
    Output,
    Switch,
    TemplateNode,
)
from .values import stringify, values_equal

logger = logging.getLogger(__name__)


class TemplateRenderer:
    """
    Рендерер узлов шаблона в контексте одного вызова.
    """

    def __init__(self, context: RenderContext):
        """
        Args:
            context: Контекст рендеринга; capture и assign дописывают в него переменные
        """
        self.context = context
        self.evaluator = ExpressionEvaluator(context)

    def render(self, nodes: NodeSequence) -> str:
        """
        Рендерит последовательность узлов.

        Returns:
            Итоговый текст
        """
        buffer: List[str] = []
        self._render_nodes(nodes, buffer)
        return "".join(buffer)

    def _render_nodes(self, nodes: NodeSequence, buffer: List[str]) -> None:
        for node in nodes:
            self._render_node(node, buffer)

    def _render_node(self, node: TemplateNode, buffer: List[str]) -> None:
        if isinstance(node, Literal):
            buffer.append(node.text)

        elif isinstance(node, Output):
            value = self.evaluator.evaluate_filtered(node.expression, node.filters)
            buffer.append(stringify(value))

        elif isinstance(node, Conditional):
            self._render_conditional(node, buffer)

        elif isinstance(node, Switch):
            self._render_switch(node, buffer)

        elif isinstance(node, Capture):
            # Тело рендерится во вложенный буфер, наружу ничего не пишется
            captured: List[str] = []
            self._render_nodes(node.body, captured)
            self.context.set(node.name, "".join(captured))

        elif isinstance(node, Assign):
            self.context.set(node.name, self.evaluator.evaluate_filtered(node.expression, node.filters))

        elif isinstance(node, CustomTag):
            buffer.append(self._render_custom_tag(node))

        else:
            raise TypeError(f"Unknown node type: {type(node).__name__}")

    def _render_conditional(self, node: Conditional, buffer: List[str]) -> None:
        """Рендерит первую ветку с истинным условием либо ветку else."""
        for branch in node.branches:
            if branch.condition is None or self.evaluator.is_true(branch.condition):
                self._render_nodes(branch.body, buffer)
                return

    def _render_switch(self, node: Switch, buffer: List[str]) -> None:
        """Рендерит первую ветку when, одно из значений которой равно субъекту."""
        subject = self.evaluator.evaluate(node.subject)

        for clause in node.cases:
            if any(values_equal(subject, self.evaluator.evaluate(value)) for value in clause.values):
                self._render_nodes(clause.body, buffer)
                return

        if node.else_body is not None:
            self._render_nodes(node.else_body, buffer)

    def _render_custom_tag(self, node: CustomTag) -> str:
        """Пользовательский тег; исключение в нём даёт пустой вывод."""
        try:
            return stringify(node.function(node.arguments, self.context))
        except Exception as e:
            logger.warning(f"Tag '{node.name}' failed with {type(e).__name__}: {e}; rendered as empty")
            return ""


def render_nodes(nodes: NodeSequence, context: RenderContext) -> str:
    """
    Удобная функция для рендеринга последовательности узлов.
    """
    return TemplateRenderer(context).render(nodes)


__all__ = ["TemplateRenderer", "render_nodes"]
