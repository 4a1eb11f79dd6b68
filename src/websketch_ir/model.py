# src/websketch_ir/model.py (IR Layer)
import logging
from datetime import datetime
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """
    The closed grammar of semantic UI primitives.

    Every consumer keys a table on this enum and checks it for completeness
    at import time, so adding a member breaks loudly everywhere it matters.
    """
    PAGE = "PAGE"
    NAV = "NAV"
    HEADER = "HEADER"
    FOOTER = "FOOTER"
    SECTION = "SECTION"
    SIDEBAR = "SIDEBAR"
    CARD = "CARD"
    LIST = "LIST"
    TABLE = "TABLE"
    MODAL = "MODAL"
    TOAST = "TOAST"
    DROPDOWN = "DROPDOWN"
    FORM = "FORM"
    INPUT = "INPUT"
    BUTTON = "BUTTON"
    LINK = "LINK"
    CHECKBOX = "CHECKBOX"
    RADIO = "RADIO"
    ICON = "ICON"
    IMAGE = "IMAGE"
    TEXT = "TEXT"
    PAGINATION = "PAGINATION"
    UNKNOWN = "UNKNOWN"


class Bounds(BaseModel):
    """Position and size normalized to [0, 1] against the viewport."""
    model_config = ConfigDict(frozen=True)

    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)
    width: float = Field(ge=0.0, le=1.0)
    height: float = Field(ge=0.0, le=1.0)

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_list(self) -> List[float]:
        return [self.x, self.y, self.width, self.height]


class TextSummary(BaseModel):
    """Digest and length of a node's text. Raw text is never stored."""
    model_config = ConfigDict(frozen=True)

    hash: str
    len: int = Field(ge=0)


class Node(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    bounds: Bounds
    interactive: bool = False
    semantics: Optional[str] = None
    text: Optional[TextSummary] = None
    # Paint order, not sorted.
    children: Tuple["Node", ...] = ()

    def iter_preorder(self) -> Iterator["Node"]:
        """Yields this node and its descendants, parent before children."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def count(self) -> int:
        return sum(1 for _ in self.iter_preorder())

    def depth(self) -> int:
        """Depth of the subtree; a leaf has depth 1."""
        deepest = 0
        stack = [(self, 1)]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            stack.extend((child, level + 1) for child in node.children)
        return deepest


Node.model_rebuild()


class Viewport(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: int = Field(gt=0)
    height: int = Field(gt=0)

    @property
    def aspect(self) -> float:
        return self.width / self.height


class Capture(BaseModel):
    """
    The root envelope of a captured page.

    Built once by the parse service and never mutated afterwards; renders,
    fingerprints and diffs are read-only projections of it.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    schema_version: str = Field(alias="schemaVersion")
    url: str
    viewport: Viewport
    captured_at: datetime = Field(alias="capturedAt")
    root: Node
