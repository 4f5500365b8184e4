"""Document models for medialink."""

import mimetypes
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, Optional, Union

Dimension = Union[str, int, None]


@dataclass(frozen=True)
class MediaNode:
    """Atomic, linkable image in the document tree.

    ``href`` belongs to the node itself. Text links are carried by link marks
    on text units and never by a media node.
    """
    src: Optional[str]
    alt: Optional[str] = None
    title: Optional[str] = None
    width: Dimension = None
    height: Dimension = None
    href: Optional[str] = None

    # Node traits, as the engine sees them
    atom = True
    selectable = True
    draggable = True

    def attrs(self) -> Dict[str, object]:
        """Get the attribute mapping in schema order."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def with_attrs(self, **changes) -> "MediaNode":
        """Copy of this node with some attributes replaced, others kept."""
        return replace(self, **changes)

    @property
    def is_linked(self) -> bool:
        return bool(self.href)


@dataclass(frozen=True)
class Selection:
    """Selection over the flat inline sequence (start <= end)."""
    start: int
    end: int

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Invalid selection: {self.start} > {self.end}")

    @classmethod
    def cursor(cls, pos: int) -> "Selection":
        return cls(pos, pos)

    @property
    def empty(self) -> bool:
        return self.start == self.end


@dataclass
class UploadFile:
    """Opaque file handle handed over by a drop, paste or file pick."""
    name: str
    content_type: str
    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: Path) -> "UploadFile":
        """Read a local file, guessing its content type from the name."""
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content_type=content_type or "application/octet-stream",
            data=path.read_bytes()
        )


@dataclass
class UploadTask:
    """One in-flight upload. Never persisted."""
    file: UploadFile
    target_position: int    # Captured once at gesture time
    node_type: type = field(default=MediaNode)
    file_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.file_url is not None or self.error is not None
