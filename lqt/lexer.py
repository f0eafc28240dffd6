"""
Лексический анализатор шаблонов.

Разбивает исходный текст на плоскую последовательность сегментов:
- обычный текст
- теги вывода {{ ... }}
- блочные теги {% ... %}

Вложенность на этом уровне не отслеживается, это задача парсера.
Единственное исключение: блок {% raw %}...{% endraw %}, содержимое
которого выдаётся как текст без разбора тегов.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import List

from .errors import LexError

logger = logging.getLogger(__name__)

OUTPUT_OPEN = "{{"
OUTPUT_CLOSE = "}}"
BLOCK_OPEN = "{%"
BLOCK_CLOSE = "%}"


class SegmentType(enum.Enum):
    """Типы сегментов исходного текста."""
    TEXT = "text"
    OUTPUT = "output"
    BLOCK = "block"


@dataclass(frozen=True)
class Segment:
    """
    Сегмент исходного текста.

    Attributes:
        type: Тип сегмента
        content: Текст (для TEXT) или содержимое тега без разделителей и крайних пробелов
        position: Смещение начала сегмента в исходном тексте
        content_position: Смещение начала content (после обрезки пробелов)
    """
    type: SegmentType
    content: str
    position: int
    content_position: int

    def __repr__(self) -> str:
        return f"Segment({self.type.name}, {self.content!r}, pos={self.position})"


class TemplateLexer:
    """
    Лексер, выделяющий текст, теги вывода и блочные теги.
    """

    # Закрывающий тег raw-блока с произвольными пробелами внутри разделителей
    RAW_END_PATTERN = re.compile(r"\{%\s*endraw\s*%\}")

    def __init__(self, text: str):
        """
        Инициализирует лексер с исходным текстом.

        Args:
            text: Исходный текст шаблона
        """
        self.text = text
        self.length = len(text)

    def tokenize(self) -> List[Segment]:
        """
        Разбивает текст на сегменты.

        Returns:
            Список сегментов в порядке следования в тексте

        Raises:
            LexError: Если открывающий разделитель не закрыт до конца текста
        """
        segments: List[Segment] = []
        position = 0

        while position < self.length:
            open_pos, opener = self._find_next_opener(position)

            if open_pos == -1:
                segments.append(Segment(SegmentType.TEXT, self.text[position:], position, position))
                break

            if open_pos > position:
                segments.append(Segment(SegmentType.TEXT, self.text[position:open_pos], position, position))

            closer = OUTPUT_CLOSE if opener == OUTPUT_OPEN else BLOCK_CLOSE
            inner_start = open_pos + len(opener)
            close_pos = self.text.find(closer, inner_start)
            if close_pos == -1:
                raise LexError(f"Unterminated '{opener}': expected '{closer}'", open_pos, self.text)

            segment = self._make_tag_segment(opener, open_pos, inner_start, close_pos)
            position = close_pos + len(closer)

            if segment.type == SegmentType.BLOCK and segment.content == "raw":
                position = self._consume_raw_block(segment, position, segments)
                continue

            segments.append(segment)

        logger.debug(f"Tokenized template of length {self.length} into {len(segments)} segments")
        return segments

    def _find_next_opener(self, start: int) -> tuple[int, str]:
        """Находит ближайший открывающий разделитель начиная с позиции start."""
        output_pos = self.text.find(OUTPUT_OPEN, start)
        block_pos = self.text.find(BLOCK_OPEN, start)

        if output_pos == -1 and block_pos == -1:
            return -1, ""
        if block_pos == -1 or (output_pos != -1 and output_pos < block_pos):
            return output_pos, OUTPUT_OPEN
        return block_pos, BLOCK_OPEN

    def _make_tag_segment(self, opener: str, open_pos: int, inner_start: int, close_pos: int) -> Segment:
        """Создаёт сегмент тега, обрезая пробелы у разделителей."""
        raw_inner = self.text[inner_start:close_pos]
        content = raw_inner.strip()
        leading = len(raw_inner) - len(raw_inner.lstrip())
        segment_type = SegmentType.OUTPUT if opener == OUTPUT_OPEN else SegmentType.BLOCK
        return Segment(segment_type, content, open_pos, inner_start + leading)

    def _consume_raw_block(self, raw_tag: Segment, position: int, segments: List[Segment]) -> int:
        """
        Выдаёт содержимое raw-блока как текст.

        Returns:
            Позиция сразу после закрывающего {% endraw %}
        """
        match = self.RAW_END_PATTERN.search(self.text, position)
        if match is None:
            raise LexError("Unterminated 'raw' block: expected '{% endraw %}'", raw_tag.position, self.text)

        if match.start() > position:
            segments.append(Segment(SegmentType.TEXT, self.text[position:match.start()], position, position))
        return match.end()


def tokenize_template(text: str) -> List[Segment]:
    """
    Удобная функция для токенизации шаблона.

    Args:
        text: Исходный текст шаблона

    Returns:
        Список сегментов
    """
    return TemplateLexer(text).tokenize()


__all__ = [
    "SegmentType",
    "Segment",
    "TemplateLexer",
    "tokenize_template",
]
