# src/websketch_ir/core/services/validation_service.py
import logging
import math
from typing import Any, List, Optional

from websketch_ir.core.errors import ErrorCode, ValidationIssue, ValidationResult
from websketch_ir.core.managers.config_manager import LimitsSettings, config_manager
from websketch_ir.core.utils.timestamps import parse_timestamp
from websketch_ir.model import Role
from websketch_ir.schema import SUPPORTED_MAJOR_VERSION, is_supported_version

logger = logging.getLogger(__name__)

DEFAULT_MAX_NODES = 10000
DEFAULT_MAX_DEPTH = 64
MAX_VIEWPORT_DIMENSION = 1_000_000

ROLE_NAMES = frozenset(role.value for role in Role)

ENVELOPE_STRING_FIELDS = ("schemaVersion", "url")


class ValidationLimits(LimitsSettings):
    """Upper bounds on tree size, enforced before any per-node work."""

    @classmethod
    def from_config(cls) -> "ValidationLimits":
        return cls(
            max_nodes=config_manager.get_nested("limits.max_nodes", DEFAULT_MAX_NODES),
            max_depth=config_manager.get_nested("limits.max_depth", DEFAULT_MAX_DEPTH),
        )


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class ValidationService:
    """
    Non-throwing structural and semantic checks for raw (decoded JSON) captures.

    Checks run in a fixed order: envelope shape, schema version, tree limits,
    then per-node role and bounds. Every finding is collected, except that
    per-node checks are skipped when the envelope has no usable root or a
    limit was exceeded.
    """

    def __init__(self, limits: Optional[ValidationLimits] = None):
        self.limits = limits or ValidationLimits.from_config()

    def validate(self, raw: Any) -> ValidationResult:
        errors: List[ValidationIssue] = []

        if not isinstance(raw, dict):
            errors.append(self._issue(ErrorCode.INVALID_CAPTURE, "", "Capture must be a JSON object"))
            return ValidationResult(valid=False, errors=errors)

        root_ok = self._check_envelope(raw, errors)
        self._check_version(raw, errors)
        if root_ok and self._check_limits(raw["root"], errors):
            self._check_nodes(raw["root"], errors)

        logger.debug("Validated capture: %d issue(s) found.", len(errors))
        return ValidationResult(valid=not errors, errors=errors)

    # --- Step 1: envelope ---

    def _check_envelope(self, raw: dict, errors: List[ValidationIssue]) -> bool:
        """Returns True when 'root' is an object that can be traversed."""
        for field in ENVELOPE_STRING_FIELDS:
            if field not in raw:
                errors.append(self._issue(ErrorCode.INVALID_CAPTURE, field, f"Missing required field '{field}'"))
            elif not isinstance(raw[field], str):
                errors.append(self._issue(ErrorCode.INVALID_CAPTURE, field, f"'{field}' must be a string"))

        viewport = raw.get("viewport")
        if "viewport" not in raw:
            errors.append(self._issue(ErrorCode.INVALID_CAPTURE, "viewport", "Missing required field 'viewport'"))
        elif not isinstance(viewport, dict):
            errors.append(self._issue(ErrorCode.INVALID_CAPTURE, "viewport", "'viewport' must be an object"))
        else:
            for dimension in ("width", "height"):
                value = viewport.get(dimension)
                if not _is_int(value) or not 0 < value <= MAX_VIEWPORT_DIMENSION:
                    errors.append(self._issue(
                        ErrorCode.INVALID_CAPTURE, f"viewport.{dimension}",
                        f"'viewport.{dimension}' must be an integer in 1..{MAX_VIEWPORT_DIMENSION}"
                    ))

        if "capturedAt" not in raw:
            errors.append(self._issue(ErrorCode.INVALID_CAPTURE, "capturedAt", "Missing required field 'capturedAt'"))
        elif parse_timestamp(raw["capturedAt"]) is None:
            errors.append(self._issue(
                ErrorCode.INVALID_CAPTURE, "capturedAt",
                "'capturedAt' must be an ISO-8601 string or epoch milliseconds"
            ))

        if "root" not in raw:
            errors.append(self._issue(ErrorCode.INVALID_CAPTURE, "root", "Missing required field 'root'"))
            return False
        if not isinstance(raw["root"], dict):
            errors.append(self._issue(ErrorCode.INVALID_CAPTURE, "root", "'root' must be an object"))
            return False
        return True

    # --- Step 2: version ---

    def _check_version(self, raw: dict, errors: List[ValidationIssue]) -> None:
        version = raw.get("schemaVersion")
        if isinstance(version, str) and not is_supported_version(version):
            errors.append(self._issue(
                ErrorCode.UNSUPPORTED_VERSION, "schemaVersion",
                f"Schema version '{version}' is not supported (expected {SUPPORTED_MAJOR_VERSION}.x.y)"
            ))

    # --- Step 3: limits ---

    def _check_limits(self, root: dict, errors: List[ValidationIssue]) -> bool:
        """
        Counts nodes and depth in one pass, stopping at the first limit hit so
        adversarial trees cost at most max_nodes steps. A children list is
        counted before it is pushed, so one huge list is never walked.
        """
        max_nodes, max_depth = self.limits.max_nodes, self.limits.max_depth
        seen = 1
        stack = [(root, 1)]
        while stack:
            node, depth = stack.pop()
            if depth > max_depth:
                errors.append(self._issue(
                    ErrorCode.LIMIT_EXCEEDED, "root", f"Capture exceeds the depth limit of {max_depth}"
                ))
                return False
            children = node.get("children") if isinstance(node, dict) else None
            if isinstance(children, list):
                seen += len(children)
                if seen > max_nodes:
                    errors.append(self._issue(
                        ErrorCode.LIMIT_EXCEEDED, "root", f"Capture exceeds the node limit of {max_nodes}"
                    ))
                    return False
                stack.extend((child, depth + 1) for child in children)
        return True

    # --- Step 4: nodes ---

    def _check_nodes(self, root: dict, errors: List[ValidationIssue]) -> None:
        stack = [("root", root)]
        while stack:
            path, node = stack.pop()
            if not isinstance(node, dict):
                errors.append(self._issue(ErrorCode.INVALID_CAPTURE, path, "Node must be an object"))
                continue

            self._check_role(node, path, errors)
            self._check_bounds(node, path, errors)
            self._check_optional_fields(node, path, errors)

            children = node.get("children", [])
            if not isinstance(children, list):
                errors.append(self._issue(ErrorCode.INVALID_CAPTURE, f"{path}.children", "'children' must be an array"))
                continue
            # Reversed so issues come out in document order
            for index in range(len(children) - 1, -1, -1):
                stack.append((f"{path}.children[{index}]", children[index]))

    def _check_role(self, node: dict, path: str, errors: List[ValidationIssue]) -> None:
        role = node.get("role")
        if "role" not in node:
            errors.append(self._issue(ErrorCode.INVALID_CAPTURE, f"{path}.role", "Missing required field 'role'"))
        elif not isinstance(role, str) or role not in ROLE_NAMES:
            errors.append(self._issue(ErrorCode.INVALID_CAPTURE, f"{path}.role", f"Unknown role {role!r}"))

    def _check_bounds(self, node: dict, path: str, errors: List[ValidationIssue]) -> None:
        bounds = node.get("bounds")
        if not isinstance(bounds, list) or len(bounds) != 4:
            errors.append(self._issue(
                ErrorCode.INVALID_CAPTURE, f"{path}.bounds", "'bounds' must be an array of 4 numbers [x, y, w, h]"
            ))
            return
        for index, value in enumerate(bounds):
            if not _is_number(value):
                errors.append(self._issue(
                    ErrorCode.INVALID_CAPTURE, f"{path}.bounds[{index}]", f"Bounds value {value!r} is not a number"
                ))
            elif not 0.0 <= value <= 1.0:
                errors.append(self._issue(
                    ErrorCode.INVALID_CAPTURE, f"{path}.bounds[{index}]", f"Bounds value {value} is outside [0, 1]"
                ))

    def _check_optional_fields(self, node: dict, path: str, errors: List[ValidationIssue]) -> None:
        if "interactive" in node and not isinstance(node["interactive"], bool):
            errors.append(self._issue(ErrorCode.INVALID_CAPTURE, f"{path}.interactive", "'interactive' must be a boolean"))

        semantics = node.get("semantics")
        if semantics is not None and not isinstance(semantics, str):
            errors.append(self._issue(ErrorCode.INVALID_CAPTURE, f"{path}.semantics", "'semantics' must be a string"))

        text = node.get("text")
        if text is None:
            return
        if not isinstance(text, dict):
            errors.append(self._issue(ErrorCode.INVALID_CAPTURE, f"{path}.text", "'text' must be an object"))
            return
        if not isinstance(text.get("hash"), str):
            errors.append(self._issue(ErrorCode.INVALID_CAPTURE, f"{path}.text.hash", "'text.hash' must be a string"))
        length = text.get("len")
        if not _is_int(length) or length < 0:
            errors.append(self._issue(ErrorCode.INVALID_CAPTURE, f"{path}.text.len", "'text.len' must be a non-negative integer"))

    @staticmethod
    def _issue(code: ErrorCode, path: str, message: str) -> ValidationIssue:
        return ValidationIssue(code=code, path=path, message=message)
