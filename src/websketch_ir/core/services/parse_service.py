# src/websketch_ir/core/services/parse_service.py
import json
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from websketch_ir.core.errors import ErrorCode, WebSketchError
from websketch_ir.core.services.validation_service import ValidationLimits, ValidationService
from websketch_ir.core.utils.timestamps import format_iso, parse_timestamp
from websketch_ir.model import Bounds, Capture, Node, Role, TextSummary, Viewport

logger = logging.getLogger(__name__)


class ParseService:
    """
    Turns untrusted JSON into a validated, immutable Capture.

    Decoding and validation failures are raised as WebSketchError; the first
    validator finding decides the error code.
    """

    def __init__(self, limits: Optional[ValidationLimits] = None):
        self._validator = ValidationService(limits)

    def parse(self, json_str: Union[str, bytes]) -> Capture:
        if isinstance(json_str, (bytes, bytearray)):
            try:
                json_str = json_str.decode("utf-8")
            except UnicodeDecodeError as e:
                raise WebSketchError(ErrorCode.INVALID_JSON, f"Input is not valid UTF-8: {e}") from e
        if not isinstance(json_str, str):
            raise WebSketchError(
                ErrorCode.INVALID_ARGS, f"Expected a JSON string, got {type(json_str).__name__}"
            )

        try:
            raw = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise WebSketchError(
                ErrorCode.INVALID_JSON, f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})"
            ) from e
        except RecursionError as e:
            raise WebSketchError(ErrorCode.LIMIT_EXCEEDED, "JSON nesting is too deep to decode") from e

        return self.from_raw(raw)

    def from_raw(self, raw: Any) -> Capture:
        """Validates an already decoded object and builds the Capture."""
        result = self._validator.validate(raw)
        if not result.valid:
            issue = result.errors[0]
            logger.debug("Rejecting capture: %s at '%s'", issue.code.value, issue.path)
            raise WebSketchError(issue.code, issue.message, issue.path)

        capture = Capture(
            schema_version=raw["schemaVersion"],
            url=raw["url"],
            viewport=Viewport(width=raw["viewport"]["width"], height=raw["viewport"]["height"]),
            captured_at=parse_timestamp(raw["capturedAt"]),
            root=self._build_tree(raw["root"]),
        )
        logger.debug("Parsed capture for %s with %d nodes.", capture.url, capture.root.count())
        return capture

    def _build_tree(self, raw_root: Dict[str, Any]) -> Node:
        """
        Builds the frozen tree bottom-up without recursion: a pre-order pass
        records each raw node with its parent index, then nodes are created in
        reverse order so every child exists before its parent.
        """
        entries: List[Tuple[Dict[str, Any], int]] = []
        stack = [(raw_root, -1)]
        while stack:
            raw, parent = stack.pop()
            entries.append((raw, parent))
            index = len(entries) - 1
            for child in reversed(raw.get("children", [])):
                stack.append((child, index))

        children_of: List[List[Node]] = [[] for _ in entries]
        node = None
        for index in range(len(entries) - 1, -1, -1):
            raw, parent = entries[index]
            # Collected last-child-first
            node = self._build_node(raw, tuple(reversed(children_of[index])))
            if parent >= 0:
                children_of[parent].append(node)
        return node

    @staticmethod
    def _build_node(raw: Dict[str, Any], children: Tuple[Node, ...]) -> Node:
        x, y, width, height = raw["bounds"]
        text = raw.get("text")
        return Node(
            role=Role(raw["role"]),
            bounds=Bounds(x=x, y=y, width=width, height=height),
            interactive=raw.get("interactive", False),
            semantics=raw.get("semantics"),
            text=TextSummary(hash=text["hash"], len=text["len"]) if text is not None else None,
            children=children,
        )


def node_to_raw(node: Node) -> Dict[str, Any]:
    """Wire form of a node; optional fields are omitted when unset."""
    raw: Dict[str, Any] = {
        "role": node.role.value,
        "bounds": node.bounds.as_list(),
        "interactive": node.interactive,
    }
    if node.semantics is not None:
        raw["semantics"] = node.semantics
    if node.text is not None:
        raw["text"] = {"hash": node.text.hash, "len": node.text.len}
    raw["children"] = [node_to_raw(child) for child in node.children]
    return raw


def serialize_capture(capture: Capture, indent: Optional[int] = None) -> str:
    """
    Convert a Capture back into its JSON envelope.

    Args:
        capture: The capture to serialize.
        indent: Indentation level for pretty-printing (default: compact).

    Returns:
        str: JSON string accepted by ParseService.parse.
    """
    data = {
        "schemaVersion": capture.schema_version,
        "url": capture.url,
        "viewport": {"width": capture.viewport.width, "height": capture.viewport.height},
        "capturedAt": format_iso(capture.captured_at, timespec="microseconds"),
        "root": node_to_raw(capture.root),
    }
    return json.dumps(data, ensure_ascii=False, indent=indent)
