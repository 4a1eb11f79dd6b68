# src/websketch_ir/core/services/fingerprint_service.py
import hashlib
import json
import logging
from enum import Enum
from typing import List, Optional

from websketch_ir.core.managers.config_manager import config_manager
from websketch_ir.model import Capture, Node
from websketch_ir.schema import DOMAIN_FULL, DOMAIN_LAYOUT, FINGERPRINT_ALGORITHM_VERSION

logger = logging.getLogger(__name__)

DEFAULT_PRECISION = 4


class FingerprintMode(str, Enum):
    FULL = "full"
    LAYOUT = "layout"


_DOMAINS = {
    FingerprintMode.FULL: DOMAIN_FULL,
    FingerprintMode.LAYOUT: DOMAIN_LAYOUT,
}


class FingerprintService:
    """
    Content-addressed digests of a capture's structure.

    The canonical form is compact JSON with keys in sorted order:

        {"aspect": "1.7778", "mode": "full", "root": <node>, "version": "..."}
        <node> = {"bounds": [...], "children": [...], "interactive": bool,
                  "role": str, "semantics": str|null, "text": str|null}

    The form is pure ASCII: non-ASCII characters are JSON-escaped, so lone
    surrogates hash like any other text. Floats are written as
    fixed-precision strings, `capturedAt` and `url` are left out, and "text"
    (the text hash) only appears in full mode.
    """

    def __init__(self, precision: Optional[int] = None):
        if precision is None:
            precision = config_manager.get_nested("fingerprint.precision", DEFAULT_PRECISION)
        self.precision = precision

    def fingerprint(self, capture: Capture, mode: FingerprintMode = FingerprintMode.FULL) -> str:
        payload = self.canonical_form(capture, mode).encode("utf-8")
        digest = hashlib.sha256(_DOMAINS[mode] + payload).hexdigest()
        logger.debug("Fingerprinted capture (%s): %s", mode.value, digest)
        return digest

    def canonical_form(self, capture: Capture, mode: FingerprintMode = FingerprintMode.FULL) -> str:
        parts: List[str] = [
            '{"aspect":', self._number(capture.viewport.aspect),
            ',"mode":', json.dumps(mode.value),
            ',"root":',
        ]
        self._write_tree(capture.root, mode, parts)
        parts.extend([',"version":', json.dumps(FINGERPRINT_ALGORITHM_VERSION), "}"])
        return "".join(parts)

    def _write_tree(self, root: Node, mode: FingerprintMode, parts: List[str]) -> None:
        """
        Emits nodes without recursion. Each stack entry is either a node to
        open or a literal closing fragment; "children" sorts between "bounds"
        and "interactive", so a node is split around its child list.
        """
        stack: List[object] = [root]
        while stack:
            item = stack.pop()
            if isinstance(item, str):
                parts.append(item)
                continue

            node: Node = item
            bounds = ",".join(self._number(value) for value in node.bounds.as_list())
            parts.append('{"bounds":[' + bounds + '],"children":[')

            stack.append("]" + self._node_tail(node, mode))
            for index in range(len(node.children) - 1, -1, -1):
                stack.append(node.children[index])
                if index > 0:
                    stack.append(",")

    @staticmethod
    def _node_tail(node: Node, mode: FingerprintMode) -> str:
        tail = (
            ',"interactive":' + json.dumps(node.interactive)
            + ',"role":' + json.dumps(node.role.value)
            + ',"semantics":' + json.dumps(node.semantics)
        )
        if mode is FingerprintMode.FULL:
            text_hash = node.text.hash if node.text is not None else None
            tail += ',"text":' + json.dumps(text_hash)
        return tail + "}"

    def _number(self, value: float) -> str:
        return json.dumps(f"{value:.{self.precision}f}")
