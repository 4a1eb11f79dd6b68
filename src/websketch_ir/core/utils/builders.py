# src/websketch_ir/core/utils/builders.py
"""
Convenience constructors for producers and tests.

These build the frozen model directly, so they skip the JSON validation
step; feed the result through `serialize_capture` and `parse_capture` when
a validated round trip matters.
"""
import hashlib
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence, Union

from websketch_ir.model import Bounds, Capture, Node, Role, TextSummary, Viewport
from websketch_ir.schema import CURRENT_SCHEMA_VERSION

TEXT_DIGEST_LENGTH = 16

DEFAULT_CAPTURED_AT = datetime(2025, 1, 1, tzinfo=timezone.utc)


def summarize_text(raw: str) -> TextSummary:
    """Reduces raw text to a digest and its length."""
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()[:TEXT_DIGEST_LENGTH]
    return TextSummary(hash=digest, len=len(raw))


def make_text(raw: str, digest: Optional[str] = None, length: Optional[int] = None) -> TextSummary:
    """Summary of `raw`, with `digest`/`length` overriding the computed values."""
    summary = summarize_text(raw)
    return TextSummary(
        hash=summary.hash if digest is None else digest,
        len=summary.len if length is None else length,
    )


def make_node(
        role: Union[Role, str],
        bounds: Sequence[float],
        children: Iterable[Node] = (),
        interactive: bool = False,
        semantics: Optional[str] = None,
        text: Optional[TextSummary] = None,
) -> Node:
    x, y, width, height = bounds
    return Node(
        role=Role(role),
        bounds=Bounds(x=x, y=y, width=width, height=height),
        interactive=interactive,
        semantics=semantics,
        text=text,
        children=tuple(children),
    )


def make_capture(
        root: Node,
        url: str = "https://example.com/",
        viewport: Sequence[int] = (1920, 1080),
        captured_at: datetime = DEFAULT_CAPTURED_AT,
        schema_version: str = CURRENT_SCHEMA_VERSION,
) -> Capture:
    return Capture(
        schema_version=schema_version,
        url=url,
        viewport=Viewport(width=viewport[0], height=viewport[1]),
        captured_at=captured_at,
        root=root,
    )
