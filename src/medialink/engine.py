"""Boundary to the document engine: transactions, steps and the range scan."""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Protocol, Tuple, Union

from medialink.document import MediaNode, Selection


class EngineError(Exception):
    """Base class for document engine failures."""


class EngineClosedError(EngineError):
    """The engine was torn down; the mutation has nowhere to go."""


class StepError(EngineError):
    """A step does not fit the current document."""


@dataclass(frozen=True)
class InsertNode:
    pos: int
    node: MediaNode


@dataclass(frozen=True)
class ReplaceWithNode:
    """Replace [start, end) with a single node."""
    start: int
    end: int
    node: MediaNode


@dataclass(frozen=True)
class InsertText:
    pos: int
    text: str


@dataclass(frozen=True)
class SetNodeAttributes:
    """Rewrite the node at ``pos`` with a full attribute set."""
    pos: int
    attrs: Dict[str, object]


@dataclass(frozen=True)
class AddLinkMark:
    start: int
    end: int
    href: str


@dataclass(frozen=True)
class RemoveLinkMark:
    start: int
    end: int


Step = Union[InsertNode, ReplaceWithNode, InsertText, SetNodeAttributes, AddLinkMark, RemoveLinkMark]


@dataclass
class Transaction:
    """Atomic list of steps, applied all-or-nothing."""
    steps: List[Step] = field(default_factory=list)
    selection: Optional[Selection] = None   # Selection after the steps, if it moves

    def add(self, step: Step) -> "Transaction":
        self.steps.append(step)
        return self

    def __bool__(self) -> bool:
        return bool(self.steps)


class DocumentEngine(Protocol):
    """What medialink needs from a rich-text document engine."""

    @property
    def selection(self) -> Selection: ...

    @property
    def closed(self) -> bool: ...

    def set_selection(self, selection: Selection) -> None: ...

    def nodes_between(self, start: int, end: int) -> Iterator[Tuple[object, int]]:
        """Yield ``(node, pos)`` depth-first for every node touching [start, end]."""
        ...

    def active_link(self, selection: Selection) -> Optional[str]:
        """href of the link mark active at the selection, if any."""
        ...

    def mark_range(self, selection: Selection) -> Optional[Tuple[int, int]]:
        """Range of the link mark around the selection, if the selection touches one."""
        ...

    def word_range(self, pos: int) -> Tuple[int, int]: ...

    def text_before(self, pos: int) -> str:
        """Text of the current paragraph up to ``pos``."""
        ...

    def dispatch(self, transaction: Transaction) -> None: ...


def find_media_node(engine: DocumentEngine, start: int, end: int) -> Optional[Tuple[MediaNode, int]]:
    """First media node touching [start, end], with its position."""
    return next(
        ((node, pos) for node, pos in engine.nodes_between(start, end) if isinstance(node, MediaNode)),
        None
    )
