# src/websketch_ir/core/services/diff_service.py
import logging
import math
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from websketch_ir.core.errors import ErrorCode, WebSketchError
from websketch_ir.core.managers.config_manager import DiffThresholds, config_manager
from websketch_ir.core.services.fingerprint_service import FingerprintMode, FingerprintService
from websketch_ir.core.utils.geometry import intersection_over_union, proximity, size_similarity
from websketch_ir.model import Capture, Node, Role

logger = logging.getLogger(__name__)

# Weights of the geometric part of the similarity score (sum to 1.0)
IOU_WEIGHT = 0.5
PROXIMITY_WEIGHT = 0.3
SIZE_WEIGHT = 0.2

DEFAULT_TOP_CHANGES = 10


class DiffOptions(DiffThresholds):
    """Matching thresholds; unset fields come from the "diff" settings section."""

    @classmethod
    def from_config(cls, **overrides: Any) -> "DiffOptions":
        values = {
            name: config_manager.get_nested(f"diff.{name}", info.default)
            for name, info in cls.model_fields.items()
        }
        values.update(overrides)
        return cls(**values)


class NodeRef(BaseModel):
    """A node plus its location in its own capture."""
    path: str
    node: Node

    @property
    def role(self) -> Role:
        return self.node.role


class NodeMatch(BaseModel):
    a: NodeRef
    b: NodeRef
    score: float
    dx: float
    dy: float
    dw: float
    dh: float
    moved: bool
    resized: bool
    text_changed: bool
    interactive_changed: bool
    semantics_changed: bool

    @property
    def magnitude(self) -> float:
        """Combined position and size delta."""
        return math.hypot(self.dx, self.dy) + math.hypot(self.dw, self.dh)

    @property
    def is_changed(self) -> bool:
        return (self.moved or self.resized or self.text_changed
                or self.interactive_changed or self.semantics_changed)


class DiffSummary(BaseModel):
    added: int = 0
    removed: int = 0
    moved: int = 0
    resized: int = 0
    text_changed: int = 0
    interactive_changed: int = 0
    semantics_changed: int = 0
    unchanged: int = 0


class DiffChange(BaseModel):
    """One line of the ranked change list."""
    kind: str
    role: Role
    path: str
    magnitude: float
    detail: str


class DiffResult(BaseModel):
    identical: bool
    matched: List[NodeMatch] = Field(default_factory=list)
    added: List[NodeRef] = Field(default_factory=list)
    removed: List[NodeRef] = Field(default_factory=list)
    summary: DiffSummary = Field(default_factory=DiffSummary)

    def ranked_changes(self) -> List[DiffChange]:
        """Geometric changes ordered by magnitude, largest first."""
        changes: List[DiffChange] = []
        for ref in self.added:
            changes.append(_presence_change("ADDED", ref))
        for ref in self.removed:
            changes.append(_presence_change("REMOVED", ref))
        for match in self.matched:
            if not (match.moved or match.resized):
                continue
            if match.moved and match.resized:
                kind = "MOVED+RESIZED"
            else:
                kind = "MOVED" if match.moved else "RESIZED"
            changes.append(DiffChange(
                kind=kind,
                role=match.b.role,
                path=match.b.path,
                magnitude=match.magnitude,
                detail=f"dx={match.dx:+.3f} dy={match.dy:+.3f} dw={match.dw:+.3f} dh={match.dh:+.3f}",
            ))
        changes.sort(key=lambda change: (-change.magnitude, change.kind, change.path))
        return changes


def _presence_change(kind: str, ref: NodeRef) -> DiffChange:
    bounds = ref.node.bounds
    return DiffChange(
        kind=kind,
        role=ref.role,
        path=ref.path,
        magnitude=math.hypot(bounds.width, bounds.height),
        detail=f"at ({bounds.x:.3f}, {bounds.y:.3f}) size {bounds.width:.3f}x{bounds.height:.3f}",
    )


@dataclass
class _FlatNode:
    index: int
    path: str
    node: Node
    children: List[int] = field(default_factory=list)


def _flatten(root: Node) -> List[_FlatNode]:
    """Pre-order list of nodes; list position is the tie-break order."""
    flat: List[_FlatNode] = []
    stack: List[Tuple[str, Node, int]] = [("root", root, -1)]
    while stack:
        path, node, parent = stack.pop()
        entry = _FlatNode(index=len(flat), path=path, node=node)
        flat.append(entry)
        if parent >= 0:
            flat[parent].children.append(entry.index)
        for position in range(len(node.children) - 1, -1, -1):
            stack.append((f"{path}.children[{position}]", node.children[position], entry.index))
    return flat


def _identity_key(node: Node) -> tuple:
    """Everything the matcher compares on a single node, children excluded."""
    text = (node.text.hash, node.text.len) if node.text is not None else None
    b = node.bounds
    return node.role, b.x, b.y, b.width, b.height, node.interactive, node.semantics, text


class DiffService:
    """
    Structural diff between two captures.

    Nodes are matched greedily by descending similarity, first among the
    children of already matched parents (top-down from the roots), then over
    every node still unmatched. Within each group, nodes identical on role,
    bounds, interactivity, semantics and text are paired first in document
    order, so a mostly unchanged page skips the pairwise scoring. Ties go to the lower pre-order index in `a`,
    then the lower pre-order index in `b`. This is an approximate matching,
    not a global optimum.
    """

    def __init__(self, options: Union[DiffOptions, Dict[str, Any], None] = None):
        self.options = self._resolve_options(options)
        self._fingerprints = FingerprintService()

    @staticmethod
    def _resolve_options(options: Union[DiffOptions, Dict[str, Any], None]) -> DiffOptions:
        if isinstance(options, DiffOptions):
            return options
        if options is not None and not isinstance(options, dict):
            raise WebSketchError(ErrorCode.INVALID_ARGS, f"Diff options must be a mapping, got {type(options).__name__}")
        try:
            return DiffOptions.from_config(**(options or {}))
        except (ValidationError, TypeError) as e:
            raise WebSketchError(ErrorCode.INVALID_ARGS, f"Invalid diff options: {e}") from e

    def similarity(self, a: Node, b: Node) -> Optional[float]:
        """Composite score, or None when the roles differ (never a match)."""
        if a.role != b.role:
            return None
        score = (
            IOU_WEIGHT * intersection_over_union(a.bounds, b.bounds)
            + PROXIMITY_WEIGHT * proximity(a.bounds, b.bounds)
            + SIZE_WEIGHT * size_similarity(a.bounds, b.bounds)
        )
        if a.semantics is not None and a.semantics == b.semantics:
            score += self.options.semantics_bonus
        return score

    def diff(self, a: Capture, b: Capture) -> DiffResult:
        for name, capture in (("a", a), ("b", b)):
            if not isinstance(capture, Capture):
                raise WebSketchError(ErrorCode.INVALID_ARGS, f"Argument '{name}' must be a Capture, got {type(capture).__name__}")

        flat_a, flat_b = _flatten(a.root), _flatten(b.root)
        pairs = self._match(flat_a, flat_b)

        matched_a = {ia for ia, _, _ in pairs}
        matched_b = {ib for _, ib, _ in pairs}
        matches = [self._describe(flat_a[ia], flat_b[ib], score) for ia, ib, score in sorted(pairs)]
        added = [NodeRef(path=e.path, node=e.node) for e in flat_b if e.index not in matched_b]
        removed = [NodeRef(path=e.path, node=e.node) for e in flat_a if e.index not in matched_a]

        summary = DiffSummary(
            added=len(added),
            removed=len(removed),
            moved=sum(1 for m in matches if m.moved),
            resized=sum(1 for m in matches if m.resized),
            text_changed=sum(1 for m in matches if m.text_changed),
            interactive_changed=sum(1 for m in matches if m.interactive_changed),
            semantics_changed=sum(1 for m in matches if m.semantics_changed),
            unchanged=sum(1 for m in matches if not m.is_changed),
        )
        identical = (
            self._fingerprints.fingerprint(a, FingerprintMode.FULL)
            == self._fingerprints.fingerprint(b, FingerprintMode.FULL)
        )
        logger.debug(
            "Diff: %d matched, %d added, %d removed (identical=%s)",
            len(matches), len(added), len(removed), identical
        )
        return DiffResult(identical=identical, matched=matches, added=added, removed=removed, summary=summary)

    # --- Matching ---

    def _match(self, flat_a: List[_FlatNode], flat_b: List[_FlatNode]) -> List[Tuple[int, int, float]]:
        used_a = [False] * len(flat_a)
        used_b = [False] * len(flat_b)
        pairs: List[Tuple[int, int, float]] = []

        # Phase 1: top-down, siblings under matched parents
        queue = deque([([0], [0])])
        while queue:
            indices_a, indices_b = queue.popleft()
            for ia, ib, score in self._match_group(indices_a, indices_b, flat_a, flat_b, used_a, used_b):
                pairs.append((ia, ib, score))
                queue.append((flat_a[ia].children, flat_b[ib].children))

        # Phase 2: whole-tree fallback for whatever is left
        rest_a = [i for i, used in enumerate(used_a) if not used]
        rest_b = [i for i, used in enumerate(used_b) if not used]
        if rest_a and rest_b:
            pairs.extend(self._match_group(rest_a, rest_b, flat_a, flat_b, used_a, used_b))
        return pairs

    def _match_group(
            self,
            indices_a: List[int],
            indices_b: List[int],
            flat_a: List[_FlatNode],
            flat_b: List[_FlatNode],
            used_a: List[bool],
            used_b: List[bool],
    ) -> List[Tuple[int, int, float]]:
        """
        Identical nodes are paired first, in document order, in linear time.
        Only what is left is scored pairwise.
        """
        pairs = self._pair_identical(indices_a, indices_b, flat_a, flat_b, used_a, used_b)
        rest_a = [ia for ia in indices_a if not used_a[ia]]
        rest_b = [ib for ib in indices_b if not used_b[ib]]
        if rest_a and rest_b:
            pairs.extend(self._greedy(self._candidates(rest_a, rest_b, flat_a, flat_b), used_a, used_b))
        return pairs

    def _pair_identical(
            self,
            indices_a: List[int],
            indices_b: List[int],
            flat_a: List[_FlatNode],
            flat_b: List[_FlatNode],
            used_a: List[bool],
            used_b: List[bool],
    ) -> List[Tuple[int, int, float]]:
        by_key: Dict[tuple, deque] = defaultdict(deque)
        for ib in indices_b:
            if not used_b[ib]:
                by_key[_identity_key(flat_b[ib].node)].append(ib)

        pairs = []
        for ia in indices_a:
            if used_a[ia]:
                continue
            waiting = by_key.get(_identity_key(flat_a[ia].node))
            if not waiting:
                continue
            score = self.similarity(flat_a[ia].node, flat_b[waiting[0]].node)
            if score < self.options.min_similarity:
                continue
            ib = waiting.popleft()
            used_a[ia] = used_b[ib] = True
            pairs.append((ia, ib, score))
        return pairs

    def _candidates(
            self,
            indices_a: Iterable[int],
            indices_b: Iterable[int],
            flat_a: List[_FlatNode],
            flat_b: List[_FlatNode],
    ) -> List[Tuple[float, int, int]]:
        by_role: Dict[Role, List[int]] = defaultdict(list)
        for ib in indices_b:
            by_role[flat_b[ib].node.role].append(ib)

        candidates = []
        for ia in indices_a:
            node_a = flat_a[ia].node
            for ib in by_role.get(node_a.role, ()):
                score = self.similarity(node_a, flat_b[ib].node)
                if score is not None and score >= self.options.min_similarity:
                    candidates.append((-score, ia, ib))
        candidates.sort()
        return candidates

    @staticmethod
    def _greedy(
            candidates: List[Tuple[float, int, int]],
            used_a: List[bool],
            used_b: List[bool],
    ) -> List[Tuple[int, int, float]]:
        accepted = []
        for neg_score, ia, ib in candidates:
            if used_a[ia] or used_b[ib]:
                continue
            used_a[ia] = used_b[ib] = True
            accepted.append((ia, ib, -neg_score))
        return accepted

    def _describe(self, entry_a: _FlatNode, entry_b: _FlatNode, score: float) -> NodeMatch:
        a, b = entry_a.node, entry_b.node
        dx, dy = b.bounds.x - a.bounds.x, b.bounds.y - a.bounds.y
        dw, dh = b.bounds.width - a.bounds.width, b.bounds.height - a.bounds.height
        text_a = a.text.hash if a.text is not None else None
        text_b = b.text.hash if b.text is not None else None
        return NodeMatch(
            a=NodeRef(path=entry_a.path, node=a),
            b=NodeRef(path=entry_b.path, node=b),
            score=score,
            dx=dx, dy=dy, dw=dw, dh=dh,
            moved=max(abs(dx), abs(dy)) > self.options.move_threshold,
            resized=max(abs(dw), abs(dh)) > self.options.resize_threshold,
            text_changed=text_a != text_b,
            interactive_changed=a.interactive != b.interactive,
            semantics_changed=a.semantics != b.semantics,
        )


def format_diff(result: DiffResult, top_n: Optional[int] = None) -> str:
    """
    Human readable report: counts per category, then the largest changes.

    Args:
        result (DiffResult): Output of DiffService.diff.
        top_n (Optional[int]): How many ranked changes to list (default from config).
    """
    if top_n is None:
        top_n = config_manager.get_nested("diff.top_changes", DEFAULT_TOP_CHANGES)
    if not isinstance(top_n, int) or isinstance(top_n, bool) or top_n < 0:
        raise WebSketchError(ErrorCode.INVALID_ARGS, f"top_n must be a non-negative integer, got {top_n!r}")

    s = result.summary
    lines = [
        f"Structural diff: {s.added} added, {s.removed} removed, {s.moved} moved, {s.resized} resized",
        f"Other changes: {s.text_changed} text, {s.interactive_changed} interactive, "
        f"{s.semantics_changed} semantics; {s.unchanged} unchanged",
    ]
    if result.identical:
        lines.append("Captures are structurally identical.")
        return "\n".join(lines)

    changes = result.ranked_changes()
    if not changes:
        lines.append("No geometric changes.")
        return "\n".join(lines)

    shown = changes[:top_n]
    lines.append(f"Top changes ({len(shown)} of {len(changes)}):")
    for rank, change in enumerate(shown, start=1):
        lines.append(f"  {rank}. {change.kind:<13} {change.role.value:<10} {change.path}  {change.detail}")
    return "\n".join(lines)
