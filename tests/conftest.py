"""
Общие фикстуры для тестов шаблонизатора.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import pytest

from lqt import parse


@dataclass
class Person:
    """Объект со ссылкой на другой объект (цепочка master)."""
    name: str
    incarnations: int
    master: Optional["Person"]

    def __str__(self) -> str:
        return self.name


@dataclass
class PersonS:
    """Объект без поля master: путь ghola.master не разрешается."""
    name: str
    incarnations: int

    def __str__(self) -> str:
        return self.name


@dataclass
class Plain:
    """Объект без собственного строкового преобразования."""
    value: int

    def doubled(self) -> int:
        return self.value * 2

    def scaled(self, factor: int) -> int:
        return self.value * factor


@pytest.fixture
def ghola_chain() -> Person:
    return Person("Duncan", 67, Person("Leto", 0, None))


@pytest.fixture
def ghola_flat() -> PersonS:
    return PersonS("Duncan", 67)


@pytest.fixture
def plain() -> Plain:
    return Plain(21)


@pytest.fixture
def render():
    """Компилирует и рендерит шаблон в строку."""
    def _render(source: str, data=None, options=None) -> str:
        return parse(source, options).render_string(data)
    return _render
