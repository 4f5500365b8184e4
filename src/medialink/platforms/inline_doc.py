"""In-memory inline document engine with HTML load and dump."""

import re
from dataclasses import dataclass, replace
from typing import Iterator, List, Optional, Tuple, Union
from bs4 import BeautifulSoup, NavigableString, Tag
from loguru import logger

from medialink.document import MediaNode, Selection
from medialink.engine import (
    AddLinkMark, EngineClosedError, InsertNode, InsertText, RemoveLinkMark,
    ReplaceWithNode, SetNodeAttributes, StepError, Transaction,
)
from medialink.media_node import MediaNodeSchema

BLOCK_TAGS = {'p', 'div', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'li', 'ul', 'ol',
              'blockquote', 'pre', 'section', 'article', 'body', 'html'}
PARAGRAPH_BREAK = '\n'
OBJECT_REPLACEMENT = '\ufffc'  # Stands in for a media node in plain text


@dataclass(frozen=True)
class TextUnit:
    """One character, optionally carrying a link mark."""
    char: str
    href: Optional[str] = None

    @property
    def is_break(self) -> bool:
        return self.char == PARAGRAPH_BREAK


Unit = Union[TextUnit, MediaNode]


class InlineDocument:
    """Flat sequence of text units and media nodes split into paragraphs by breaks.

    Position ``i`` sits before unit ``i``. Every unit has size 1, so a media
    node at ``pos`` is selected by ``Selection(pos, pos + 1)``.
    """

    def __init__(self, schema: MediaNodeSchema = None, html: str = ""):
        self.schema = schema or MediaNodeSchema()
        self._units: List[Unit] = []
        self._selection = Selection.cursor(0)
        self._closed = False
        if html:
            self.set_content(html)

    def __len__(self) -> int:
        return len(self._units)

    @property
    def selection(self) -> Selection:
        return self._selection

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def units(self) -> Tuple[Unit, ...]:
        return tuple(self._units)

    @property
    def text(self) -> str:
        """Plain text, media nodes shown as U+FFFC."""
        return ''.join(_unit_char(u) for u in self._units)

    def close(self):
        """Tear the engine down; later dispatches fail with EngineClosedError."""
        self._closed = True
        logger.debug("InlineDocument closed")

    def set_selection(self, selection: Selection):
        if selection.end > len(self._units):
            raise StepError(f"Selection {selection} outside document of size {len(self._units)}")
        self._selection = selection

    # -- Queries ------------------------------------------------------------

    def nodes_between(self, start: int, end: int) -> Iterator[Tuple[Unit, int]]:
        """Yield every unit overlapping [start, end) with its position."""
        for pos in range(max(start, 0), min(end, len(self._units))):
            yield self._units[pos], pos

    def media_nodes(self) -> List[Tuple[MediaNode, int]]:
        return [(u, pos) for pos, u in enumerate(self._units) if isinstance(u, MediaNode)]

    def node_at(self, pos: int) -> Optional[Unit]:
        if 0 <= pos < len(self._units):
            return self._units[pos]
        return None

    def active_link(self, selection: Selection) -> Optional[str]:
        """href of the link mark at the cursor, or the first one inside a range."""
        if selection.empty:
            for pos in (selection.start - 1, selection.start):
                unit = self.node_at(pos)
                if isinstance(unit, TextUnit) and unit.href:
                    return unit.href
            return None
        for unit, _ in self.nodes_between(selection.start, selection.end):
            if isinstance(unit, TextUnit) and unit.href:
                return unit.href
        return None

    def mark_range(self, selection: Selection) -> Optional[Tuple[int, int]]:
        """Selection extended over the whole link mark it starts in, if any."""
        anchor = None
        for pos in (selection.start, selection.start - 1):
            unit = self.node_at(pos)
            if isinstance(unit, TextUnit) and unit.href:
                anchor = pos
                break
        if anchor is None:
            return None

        href = self._units[anchor].href
        start = anchor
        while start > 0 and self._has_link(start - 1, href):
            start -= 1
        end = anchor + 1
        while end < len(self._units) and self._has_link(end, href):
            end += 1
        return min(start, selection.start), max(end, selection.end)

    def word_range(self, pos: int) -> Tuple[int, int]:
        """Run of non-whitespace text around ``pos``."""
        start = pos
        while start > 0 and self._is_word_char(start - 1):
            start -= 1
        end = pos
        while end < len(self._units) and self._is_word_char(end):
            end += 1
        return start, end

    def text_before(self, pos: int) -> str:
        """Text of the current paragraph up to ``pos``."""
        chars = []
        for unit in reversed(self._units[:pos]):
            if isinstance(unit, TextUnit) and unit.is_break:
                break
            chars.append(_unit_char(unit))
        return ''.join(reversed(chars))

    def _has_link(self, pos: int, href: str) -> bool:
        unit = self._units[pos]
        return isinstance(unit, TextUnit) and unit.href == href

    def _is_word_char(self, pos: int) -> bool:
        unit = self._units[pos]
        return isinstance(unit, TextUnit) and not unit.char.isspace()

    # -- Mutation -----------------------------------------------------------

    def dispatch(self, transaction: Transaction):
        """Apply a transaction atomically."""
        if self._closed:
            raise EngineClosedError("Document engine has been torn down")

        units = list(self._units)
        selection = self._selection
        for step in transaction.steps:
            selection = _map_selection(selection, step)
            _apply_step(units, step)

        self._units = units
        self._selection = transaction.selection or selection
        if self._selection.end > len(self._units):
            self._selection = Selection.cursor(len(self._units))
        logger.debug("Applied transaction with {} steps", len(transaction.steps))

    # -- HTML ---------------------------------------------------------------

    def set_content(self, html: str):
        """Replace the document with parsed HTML."""
        soup = BeautifulSoup(html or "", 'html.parser')
        units: List[Unit] = []
        for index, block in enumerate(self._blocks(soup)):
            if index:
                units.append(TextUnit(PARAGRAPH_BREAK))
            self._collect(block, None, units)
        self._units = units
        self._selection = Selection.cursor(0)
        logger.debug("Loaded document: {} units, {} media nodes", len(units), len(self.media_nodes()))

    def get_html(self) -> str:
        """Serialize the document, one <p> per paragraph."""
        paragraphs: List[List[Unit]] = [[]]
        for unit in self._units:
            if isinstance(unit, TextUnit) and unit.is_break:
                paragraphs.append([])
            else:
                paragraphs[-1].append(unit)
        return ''.join(f"<p>{self._render_inline(p)}</p>" for p in paragraphs)

    def _render_inline(self, units: List[Unit]) -> str:
        parts = []
        run: List[str] = []
        run_href: Optional[str] = None

        def flush():
            if run:
                text = _escape_text(''.join(run))
                parts.append(f'<a href="{_escape_text(run_href)}">{text}</a>' if run_href else text)
                run.clear()

        for unit in units:
            if isinstance(unit, MediaNode):
                flush()
                parts.append(self.schema.serialize(unit))
                continue
            if unit.href != run_href:
                flush()
                run_href = unit.href
            run.append(unit.char)
        flush()
        return ''.join(parts)

    def _blocks(self, parent: Tag) -> Iterator[List]:
        """Group children into paragraphs, flattening nested blocks."""
        pending = []
        for child in parent.children:
            if isinstance(child, Tag) and child.name in BLOCK_TAGS:
                if _has_content(pending):
                    yield pending
                pending = []
                if any(isinstance(c, Tag) and c.name in BLOCK_TAGS for c in child.children):
                    yield from self._blocks(child)
                else:
                    yield list(child.children)
            else:
                pending.append(child)
        if _has_content(pending):
            yield pending

    def _collect(self, nodes, href: Optional[str], units: List[Unit]):
        for node in nodes:
            if isinstance(node, NavigableString):
                text = re.sub(r'\s+', ' ', str(node))
                units.extend(TextUnit(ch, href) for ch in text)
            elif not isinstance(node, Tag):
                continue
            elif node.name == 'br':
                units.append(TextUnit(PARAGRAPH_BREAK))
            elif node.name == 'img':
                # Anchor-wrapped images resolve to the anchor rule here
                media = self.schema.match_element(node)
                if media is not None:
                    units.append(media)
            elif node.name == 'a':
                self._collect(node.children, node.get('href') or href, units)
            else:
                self._collect(node.children, href, units)


def _apply_step(units: List[Unit], step):
    size = len(units)
    if isinstance(step, InsertNode):
        _check_pos(step.pos, size)
        units.insert(step.pos, step.node)
    elif isinstance(step, ReplaceWithNode):
        _check_range(step.start, step.end, size)
        units[step.start:step.end] = [step.node]
    elif isinstance(step, InsertText):
        _check_pos(step.pos, size)
        units[step.pos:step.pos] = [TextUnit(ch) for ch in step.text]
    elif isinstance(step, SetNodeAttributes):
        unit = units[step.pos] if 0 <= step.pos < size else None
        if not isinstance(unit, MediaNode):
            raise StepError(f"No media node at position {step.pos}")
        units[step.pos] = unit.with_attrs(**step.attrs)
    elif isinstance(step, AddLinkMark):
        _check_range(step.start, step.end, size)
        _relink(units, step.start, step.end, step.href)
    elif isinstance(step, RemoveLinkMark):
        _check_range(step.start, step.end, size)
        _relink(units, step.start, step.end, None)
    else:
        raise StepError(f"Unsupported step: {type(step).__name__}")


def _relink(units: List[Unit], start: int, end: int, href: Optional[str]):
    """Set or clear the link mark on text units; media nodes are never marked."""
    for pos in range(start, end):
        unit = units[pos]
        if isinstance(unit, TextUnit) and not unit.is_break:
            units[pos] = replace(unit, href=href)


def _map_selection(selection: Selection, step) -> Selection:
    """Shift a selection over content inserted before it."""
    if isinstance(step, (InsertNode, InsertText)):
        pos, delta = step.pos, (1 if isinstance(step, InsertNode) else len(step.text))
    elif isinstance(step, ReplaceWithNode):
        pos, delta = step.start, 1 - (step.end - step.start)
        if step.start < selection.end and step.end > selection.start:
            return Selection.cursor(step.start + 1)
    else:
        return selection

    def shift(p):
        return p + delta if p >= pos else p

    start, end = shift(selection.start), shift(selection.end)
    return Selection(min(start, end), max(start, end))


def _check_pos(pos: int, size: int):
    if not 0 <= pos <= size:
        raise StepError(f"Position {pos} outside document of size {size}")


def _check_range(start: int, end: int, size: int):
    if not 0 <= start <= end <= size:
        raise StepError(f"Range {start}-{end} outside document of size {size}")


def _has_content(nodes) -> bool:
    return any(isinstance(n, Tag) or str(n).strip() for n in nodes)


def _unit_char(unit: Unit) -> str:
    return unit.char if isinstance(unit, TextUnit) else OBJECT_REPLACEMENT


def _escape_text(text: str) -> str:
    """Escape HTML special characters in text and attribute values."""
    return (text
            .replace('&', '&amp;')
            .replace('<', '&lt;')
            .replace('>', '&gt;')
            .replace('"', '&quot;'))
