# src/websketch_ir/core/services/render_service.py
import logging
from typing import Dict, List, NamedTuple, Optional, Tuple

from websketch_ir.core.errors import ErrorCode, WebSketchError
from websketch_ir.core.managers.config_manager import config_manager
from websketch_ir.core.utils.geometry import to_cells
from websketch_ir.core.utils.timestamps import format_iso
from websketch_ir.model import Capture, Node, Role

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 80
DEFAULT_HEIGHT = 24

ROLE_ABBREVIATIONS: Dict[Role, str] = {
    Role.PAGE: "PAGE",
    Role.NAV: "NAV",
    Role.HEADER: "HDR",
    Role.FOOTER: "FTR",
    Role.SECTION: "SEC",
    Role.SIDEBAR: "SIDE",
    Role.CARD: "CARD",
    Role.LIST: "LIST",
    Role.TABLE: "TBL",
    Role.MODAL: "MDL",
    Role.TOAST: "TST",
    Role.DROPDOWN: "DRP",
    Role.FORM: "FRM",
    Role.INPUT: "INP",
    Role.BUTTON: "BTN",
    Role.LINK: "LNK",
    Role.CHECKBOX: "CHK",
    Role.RADIO: "RAD",
    Role.ICON: "ICO",
    Role.IMAGE: "IMG",
    Role.TEXT: "TXT",
    Role.PAGINATION: "PAG",
    Role.UNKNOWN: "UNK",
}

_missing = set(Role) - set(ROLE_ABBREVIATIONS)
if _missing:
    raise RuntimeError(f"No abbreviation for role(s): {sorted(role.value for role in _missing)}")
if len(set(ROLE_ABBREVIATIONS.values())) != len(ROLE_ABBREVIATIONS):
    raise RuntimeError("Role abbreviations must be unique")

# (exclusive upper length bound, dot count); anything longer gets MAX_TEXT_DOTS
TEXT_TIERS: Tuple[Tuple[int, int], ...] = ((10, 1), (50, 2), (200, 3))
MAX_TEXT_DOTS = 3


class BorderStyle(NamedTuple):
    top_left: str
    top_right: str
    bottom_left: str
    bottom_right: str
    horizontal: str
    vertical: str


BOX_DRAWING = BorderStyle("┌", "┐", "└", "┘", "─", "│")
ASCII_BORDERS = BorderStyle("+", "+", "+", "+", "-", "|")


def text_dots(length: int) -> int:
    for bound, dots in TEXT_TIERS:
        if length < bound:
            return dots
    return MAX_TEXT_DOTS


def node_label(node: Node, show_semantics: bool = True) -> str:
    """
    Label painted inside a node's box: '[BTN]' without text, 'BTN..' with
    text (dots encode the length tier), plus ':<semantics>' when requested.
    """
    abbreviation = ROLE_ABBREVIATIONS[node.role]
    if node.text is None:
        label = f"[{abbreviation}]"
    else:
        label = abbreviation + "." * text_dots(node.text.len)
    if show_semantics and node.semantics:
        label = f"{label}:{node.semantics}"
    # Keep every row a single line of fixed width
    return "".join(ch if ch.isprintable() else " " for ch in label)


class RenderService:
    """
    Rasterizes a Capture onto a fixed character grid.

    Nodes are painted in pre-order with opaque boxes, so a child covers its
    parent and a later sibling covers an earlier one. Geometry that does not
    fit is clipped and labels are truncated; rendering never fails on a
    valid tree.
    """

    def render_ascii(self, capture: Capture, width: Optional[int] = None, height: Optional[int] = None) -> str:
        return self._render(capture, width, height, BOX_DRAWING, show_semantics=True)

    def render_structure(self, capture: Capture, width: Optional[int] = None, height: Optional[int] = None) -> str:
        """Geometry and roles only: ASCII borders, semantics never shown."""
        return self._render(capture, width, height, ASCII_BORDERS, show_semantics=False)

    def render_for_llm(self, capture: Capture) -> str:
        header = "\n".join([
            f"URL: {capture.url}",
            f"Viewport: {capture.viewport.width}x{capture.viewport.height}",
            f"Captured: {format_iso(capture.captured_at)}",
        ])
        body = self.render_ascii(capture)
        return f"{header}\n\n{body}\n\n{self.generate_legend()}"

    @staticmethod
    def generate_legend() -> str:
        lines = ["Legend:"]
        for role in Role:
            lines.append(f"  {ROLE_ABBREVIATIONS[role]:<4} = {role.value}")
        tiers = ", ".join(f"{'.' * dots} <{bound} chars" for bound, dots in TEXT_TIERS)
        lines.append(f"  [ABR] = no text; ABR + dots = text length ({tiers}; capped at {'.' * MAX_TEXT_DOTS})")
        return "\n".join(lines)

    # --- Grid painting ---

    def _render(
            self,
            capture: Capture,
            width: Optional[int],
            height: Optional[int],
            style: BorderStyle,
            show_semantics: bool,
    ) -> str:
        width, height = self._resolve_dimensions(width, height)
        grid = [[" "] * width for _ in range(height)]

        painted = 0
        for node in capture.root.iter_preorder():
            self._paint_node(grid, node, width, height, style, show_semantics)
            painted += 1

        logger.debug("Rendered %d node(s) onto a %dx%d grid.", painted, width, height)
        return "\n".join("".join(row) for row in grid)

    @staticmethod
    def _resolve_dimensions(width: Optional[int], height: Optional[int]) -> Tuple[int, int]:
        if width is None:
            width = config_manager.get_nested("render.width", DEFAULT_WIDTH)
        if height is None:
            height = config_manager.get_nested("render.height", DEFAULT_HEIGHT)
        for name, value in (("width", width), ("height", height)):
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise WebSketchError(ErrorCode.INVALID_ARGS, f"Render {name} must be a positive integer, got {value!r}")
        return width, height

    def _paint_node(
            self,
            grid: List[List[str]],
            node: Node,
            width: int,
            height: int,
            style: BorderStyle,
            show_semantics: bool,
    ) -> None:
        col0, row0, col1, row1 = to_cells(node.bounds, width, height)
        label = node_label(node, show_semantics)

        if col1 > col0 and row1 > row0:
            self._draw_box(grid, col0, row0, col1, row1, style)
            # A two-row box has no interior row for the label
            if row1 - row0 >= 2:
                self._write(grid, row0 + 1, col0 + 1, label, col1 - col0 - 1)
        else:
            self._write(grid, row0, col0, label, col1 - col0 + 1)

    @staticmethod
    def _draw_box(grid: List[List[str]], col0: int, row0: int, col1: int, row1: int, style: BorderStyle) -> None:
        for row in range(row0 + 1, row1):
            line = grid[row]
            line[col0] = style.vertical
            line[col1] = style.vertical
            for col in range(col0 + 1, col1):
                line[col] = " "
        for col in range(col0 + 1, col1):
            grid[row0][col] = style.horizontal
            grid[row1][col] = style.horizontal
        grid[row0][col0] = style.top_left
        grid[row0][col1] = style.top_right
        grid[row1][col0] = style.bottom_left
        grid[row1][col1] = style.bottom_right

    @staticmethod
    def _write(grid: List[List[str]], row: int, col: int, label: str, available: int) -> None:
        if available <= 0:
            return
        line = grid[row]
        for offset, ch in enumerate(label[:available]):
            line[col + offset] = ch
