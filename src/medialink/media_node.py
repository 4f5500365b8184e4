"""Linkable media node: HTML parse rules, serialization and inline shorthand."""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional
from bs4 import BeautifulSoup, Tag
from loguru import logger

from medialink.config import SchemaSettings
from medialink.document import MediaNode, Selection
from medialink.engine import ReplaceWithNode, Transaction

# ![alt](src "title") at the end of the text, after line start or whitespace
SHORTHAND_PATTERN = re.compile(r'(?:^|\s)(!\[(.+|:?)]\((\S+)(?:(?:\s+)["\'](\S+)["\'])?\))$')

IMAGE_ATTRIBUTES = ('src', 'alt', 'title', 'width', 'height')
# Omitted from output when falsy, not only when null
OPTIONAL_RENDER_ATTRIBUTES = ('width', 'height')


@dataclass(frozen=True)
class ShorthandMatch:
    """Shorthand found at the end of a text run."""
    start: int      # Offset of '!' (leading whitespace excluded)
    end: int
    attrs: Dict[str, Optional[str]]


class MediaNodeSchema:
    """Parse and serialize media nodes, anchor-wrapped or bare."""

    name = "mediaNode"

    def __init__(self, settings: SchemaSettings = None):
        self.settings = settings or SchemaSettings()
        logger.debug("MediaNodeSchema initialized: allow_base64={}, defaults={}",
                     self.settings.allow_base64, self.settings.html_attributes)

    @property
    def group(self) -> str:
        return "inline" if self.settings.inline else "block"

    # -- Parsing ------------------------------------------------------------

    def parse(self, fragment: str) -> Optional[MediaNode]:
        """Parse the first element of an HTML fragment, or None if no rule matches."""
        soup = BeautifulSoup(fragment, 'html.parser')
        element = soup.find(True)
        if element is None:
            return None
        return self.match_element(element)

    def parse_all(self, html: str) -> List[MediaNode]:
        """Parse every media node in a document, in document order."""
        soup = BeautifulSoup(html, 'html.parser')
        nodes = []
        for img in soup.find_all('img'):
            # Visiting images (not anchors) keeps each <img> to a single node
            node = self._match_anchor(img.parent, img) if _is_link(img.parent) else None
            if node is None:
                node = self._match_image(img)
            if node is not None:
                nodes.append(node)
        logger.debug("Parsed {} media nodes from {} characters of HTML", len(nodes), len(html))
        return nodes

    def match_element(self, element: Tag) -> Optional[MediaNode]:
        """Apply the parse rules to one element, most specific rule first."""
        if _is_link(element):
            img = element.find('img', recursive=False)
            return self._match_anchor(element, img) if img is not None else None
        if element.name == 'img':
            if _is_link(element.parent):
                return self._match_anchor(element.parent, element)
            return self._match_image(element)
        return None

    def _match_anchor(self, anchor: Tag, img: Tag) -> Optional[MediaNode]:
        """Rule 1: <a href> directly wrapping <img src>."""
        if not img.has_attr('src'):
            return None
        return MediaNode(href=anchor.get('href'), **self._image_attrs(img))

    def _match_image(self, img: Tag) -> Optional[MediaNode]:
        """Rule 2: bare <img src>, skipping data: sources unless allowed."""
        src = img.get('src')
        if src is None:
            return None
        if not self.settings.allow_base64 and src.startswith('data:'):
            logger.debug("Skipping base64 image source")
            return None
        return MediaNode(href=None, **self._image_attrs(img))

    @staticmethod
    def _image_attrs(img: Tag) -> Dict[str, Optional[str]]:
        return {name: img.get(name) for name in IMAGE_ATTRIBUTES}

    # -- Serialization ------------------------------------------------------

    def render_attributes(self, node: MediaNode) -> Dict[str, str]:
        """Image attributes: static defaults merged with the node's non-null values."""
        node_attrs = {}
        for name in IMAGE_ATTRIBUTES:
            value = getattr(node, name)
            if value is None:
                continue
            if name in OPTIONAL_RENDER_ATTRIBUTES and not value:
                continue
            node_attrs[name] = str(value)
        return merge_attributes(self.settings.html_attributes, node_attrs)

    def serialize(self, node: MediaNode) -> str:
        """Render a node as <img>, wrapped in <a href> when the node is linked."""
        img_html = "<img" + "".join(
            f' {name}="{_escape_html(value)}"' for name, value in self.render_attributes(node).items()
        ) + ">"
        # An empty href counts as unlinked, same as None
        if node.href:
            return f'<a href="{_escape_html(node.href)}">{img_html}</a>'
        return img_html

    # -- Commands and input rules -------------------------------------------

    def create_node(self, attrs: Dict[str, object]) -> MediaNode:
        """Instantiate a node from an attribute mapping; unknown keys are dropped."""
        known = {name: attrs[name] for name in MediaNode.__dataclass_fields__ if name in attrs}
        dropped = set(attrs) - set(known)
        if dropped:
            logger.debug("Dropping unknown media attributes: {}", sorted(dropped))
        known.setdefault('src', None)
        return MediaNode(**known)

    def create_insertion_command(self, attrs: Dict[str, object], selection: Selection) -> Transaction:
        """Replace the selection with a single node built from ``attrs``."""
        node = self.create_node(attrs)
        return Transaction(
            steps=[ReplaceWithNode(selection.start, selection.end, node)],
            selection=Selection.cursor(selection.start + 1)
        )

    def match_shorthand(self, text: str) -> Optional[ShorthandMatch]:
        """Recognize ``![alt](src "title")`` typed at the end of ``text``."""
        match = SHORTHAND_PATTERN.search(text)
        if not match:
            return None

        alt = match.group(2)
        if alt in ('', ':'):
            alt = None

        attrs = {'src': match.group(3), 'alt': alt, 'title': match.group(4)}
        logger.debug("Shorthand image matched: src={}", attrs['src'])
        return ShorthandMatch(start=match.start(1), end=match.end(1), attrs=attrs)


def merge_attributes(*attribute_sets: Dict[str, str]) -> Dict[str, str]:
    """Merge attribute dicts left to right; class and style accumulate."""
    merged: Dict[str, str] = {}
    for attributes in attribute_sets:
        for name, value in attributes.items():
            if name not in merged:
                merged[name] = value
            elif name == 'class':
                existing = merged[name].split()
                merged[name] = " ".join(existing + [c for c in value.split() if c not in existing])
            elif name == 'style':
                merged[name] = "; ".join(s for s in (merged[name].rstrip('; '), value) if s)
            else:
                merged[name] = value
    return merged


def _is_link(element) -> bool:
    return isinstance(element, Tag) and element.name == 'a' and element.has_attr('href')


def _escape_html(text: str) -> str:
    """Escape HTML special characters."""
    return (str(text)
            .replace('&', '&amp;')
            .replace('<', '&lt;')
            .replace('>', '&gt;')
            .replace('"', '&quot;')
            .replace("'", '&#39;'))
