"""Route attach/detach URL intents to a media node or a text link mark."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from loguru import logger

from medialink.document import MediaNode, Selection
from medialink.engine import (
    AddLinkMark, DocumentEngine, RemoveLinkMark, SetNodeAttributes, Transaction, find_media_node,
)
from medialink.url_policy import UrlPolicy


class ResolverMode(Enum):
    NODE = "node"
    TEXT = "text"


@dataclass(frozen=True)
class AttachState:
    """What the link dialog opens with."""
    mode: ResolverMode
    current_href: str
    node: Optional[MediaNode] = None
    node_position: Optional[int] = None


@dataclass
class AttachResult:
    """Outcome of a commit: a transaction to dispatch, or a field-level error."""
    mode: ResolverMode
    transaction: Optional[Transaction] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AttachmentResolver:
    """Attach or detach a destination URL on the current selection.

    A media node anywhere in the selection wins over text: its ``href`` is
    rewritten and no link mark is touched. Otherwise the link mark around the
    selection is set or removed.
    """

    def __init__(self, policy: UrlPolicy = None, default_protocol: Optional[str] = None):
        self.policy = policy or UrlPolicy()
        self.default_protocol = default_protocol or self.policy.settings.default_protocol
        logger.debug("AttachmentResolver initialized: default_protocol={}", self.default_protocol)

    def begin_attach(self, engine: DocumentEngine, selection: Optional[Selection] = None) -> AttachState:
        """Decide the mode for the selection and read the prefill URL."""
        selection = selection or engine.selection
        found = find_media_node(engine, selection.start, selection.end)
        if found:
            node, pos = found
            logger.debug("Attach targets media node at {}", pos)
            return AttachState(ResolverMode.NODE, node.href or "", node=node, node_position=pos)

        return AttachState(ResolverMode.TEXT, engine.active_link(selection) or "")

    def commit_attach(self, engine: DocumentEngine, url: str,
                      selection: Optional[Selection] = None) -> AttachResult:
        """Build the mutation that sets (or, for an empty URL, clears) the destination."""
        selection = selection or engine.selection
        state = self.begin_attach(engine, selection)
        url = (url or "").strip()

        normalized = None
        if url:
            verdict = self.policy.check(url, self.default_protocol)
            if not verdict.accepted:
                logger.warning("Link rejected: {} ({})", url, verdict.reason)
                return AttachResult(state.mode, error=verdict.reason)
            normalized = verdict.url

        if state.mode is ResolverMode.NODE:
            attrs = state.node.attrs()
            attrs['href'] = normalized
            logger.info("Setting media node href at {}: {}", state.node_position, normalized)
            return AttachResult(state.mode, Transaction([SetNodeAttributes(state.node_position, attrs)]))

        return AttachResult(state.mode, self._text_transaction(engine, selection, normalized))

    def detach(self, engine: DocumentEngine, selection: Optional[Selection] = None) -> AttachResult:
        """Remove the destination without going through the dialog."""
        return self.commit_attach(engine, "", selection)

    def _text_transaction(self, engine: DocumentEngine, selection: Selection,
                          href: Optional[str]) -> Transaction:
        mark_range = engine.mark_range(selection)
        if mark_range:
            start, end = mark_range
        elif selection.empty and href:
            start, end = engine.word_range(selection.start)
        else:
            start, end = selection.start, selection.end

        if start == end:
            logger.debug("Nothing to link at {}", start)
            return Transaction()

        if href is None:
            logger.info("Removing link mark over {}-{}", start, end)
            return Transaction([RemoveLinkMark(start, end)])
        logger.info("Applying link mark over {}-{}: {}", start, end, href)
        return Transaction([AddLinkMark(start, end, href)])
