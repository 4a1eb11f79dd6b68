# src/websketch_ir/api.py
"""
Public entry points of the WebSketch IR core.

Every function here is synchronous and pure over its inputs: captures are
never mutated and nothing is remembered between calls.

    from websketch_ir.api import parse_capture, render_ascii, diff, format_diff

    capture = parse_capture(json_string)
    print(render_ascii(capture))
"""
from typing import Any, Dict, Optional, Union

from websketch_ir.core.errors import ErrorCode, ValidationIssue, ValidationResult, WebSketchError
from websketch_ir.core.services.diff_service import DiffOptions, DiffResult, DiffService
from websketch_ir.core.services.diff_service import format_diff as _format_diff
from websketch_ir.core.services.fingerprint_service import FingerprintMode, FingerprintService
from websketch_ir.core.services.parse_service import ParseService, serialize_capture
from websketch_ir.core.services.render_service import RenderService
from websketch_ir.core.services.validation_service import ValidationLimits, ValidationService
from websketch_ir.core.utils.builders import make_capture, make_node, make_text, summarize_text
from websketch_ir.core.utils.configure_logging import configure_logger
from websketch_ir.model import Bounds, Capture, Node, Role, TextSummary, Viewport

__all__ = [
    # Operations
    "parse_capture",
    "validate_capture",
    "serialize_capture",
    "render_ascii",
    "render_structure",
    "render_for_llm",
    "generate_legend",
    "diff",
    "format_diff",
    "fingerprint_capture",
    "fingerprint_layout",
    # Model
    "Role",
    "Bounds",
    "TextSummary",
    "Node",
    "Viewport",
    "Capture",
    # Errors
    "ErrorCode",
    "WebSketchError",
    "ValidationIssue",
    "ValidationResult",
    # Options and results
    "ValidationLimits",
    "DiffOptions",
    "DiffResult",
    # Builders
    "make_capture",
    "make_node",
    "make_text",
    "summarize_text",
    # Host setup
    "configure_logger",
]


def parse_capture(json_str: Union[str, bytes], limits: Optional[ValidationLimits] = None) -> Capture:
    """Decode, validate and build a Capture. Raises WebSketchError."""
    return ParseService(limits).parse(json_str)


def validate_capture(raw: Any, limits: Optional[ValidationLimits] = None) -> ValidationResult:
    """Check a decoded object without raising; returns every finding."""
    return ValidationService(limits).validate(raw)


def render_ascii(capture: Capture, width: Optional[int] = None, height: Optional[int] = None) -> str:
    return RenderService().render_ascii(capture, width, height)


def render_structure(capture: Capture, width: Optional[int] = None, height: Optional[int] = None) -> str:
    return RenderService().render_structure(capture, width, height)


def render_for_llm(capture: Capture) -> str:
    return RenderService().render_for_llm(capture)


def generate_legend() -> str:
    return RenderService.generate_legend()


def diff(a: Capture, b: Capture, options: Union[DiffOptions, Dict[str, Any], None] = None) -> DiffResult:
    return DiffService(options).diff(a, b)


def format_diff(result: DiffResult, top_n: Optional[int] = None) -> str:
    return _format_diff(result, top_n)


def fingerprint_capture(capture: Capture) -> str:
    """Digest over roles, geometry, flags, semantics, text hashes and aspect ratio."""
    return FingerprintService().fingerprint(capture, FingerprintMode.FULL)


def fingerprint_layout(capture: Capture) -> str:
    """Like fingerprint_capture, but blind to text content."""
    return FingerprintService().fingerprint(capture, FingerprintMode.LAYOUT)
