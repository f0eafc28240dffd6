"""
Контекст рендеринга.

Изменяемый слой переменных, живущий один вызов render():
входные данные снизу, переменные capture/assign поверх них.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

from .values import MISSING, normalize


@dataclass
class RenderContext:
    """
    Переменные одного вызова рендеринга.

    Входные данные не изменяются: capture и assign пишут в locals,
    которые перекрывают одноимённые ключи данных.

    Attributes:
        data: Входные данные вызова render()
        locals: Переменные, созданные тегами capture/assign
        placeholders: Выводить ли {{PATH}} для неразрешённых путей на объектах
    """
    data: Mapping = field(default_factory=dict)
    locals: Dict[str, Any] = field(default_factory=dict)
    placeholders: bool = True

    def __post_init__(self):
        if self.data is None:
            self.data = {}
        elif not isinstance(self.data, Mapping):
            raise TypeError(
                f"Render data must be a mapping, got {type(self.data).__name__}"
            )

    def get(self, name: str) -> Any:
        """
        Возвращает значение переменной верхнего уровня.

        Returns:
            Значение или MISSING, если переменная не определена
        """
        if name in self.locals:
            return self.locals[name]
        if name in self.data:
            return normalize(self.data[name])
        return MISSING

    def set(self, name: str, value: Any) -> None:
        """Связывает переменную в контексте (capture, assign)."""
        self.locals[name] = value

    def __contains__(self, name: str) -> bool:
        return name in self.locals or name in self.data

    def names(self) -> Iterator[str]:
        """Имена всех видимых переменных."""
        seen = set(self.locals)
        yield from self.locals
        for name in self.data:
            if name not in seen:
                yield name


def make_context(data: Optional[Mapping] = None, placeholders: bool = True) -> RenderContext:
    """Создаёт контекст для нового вызова рендеринга."""
    return RenderContext(data=data if data is not None else {}, placeholders=placeholders)


__all__ = ["RenderContext", "make_context"]
