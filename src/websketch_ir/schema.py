"""
Schema Version Constants for WebSketch IR
=========================================

Version Format: "MAJOR.MINOR.PATCH"
- MAJOR: Breaking changes to the capture envelope or node shape
- MINOR: Backward-compatible additions (unknown fields are ignored)
- PATCH: Clarifications that don't change the wire format

A capture is accepted when its MAJOR equals SUPPORTED_MAJOR_VERSION, whatever
its MINOR and PATCH are.

Usage:
    from websketch_ir.schema import is_supported_version

    if not is_supported_version(raw["schemaVersion"]):
        ...
"""
import re
from typing import Dict, Optional, Tuple

# Version written by producers of this release
CURRENT_SCHEMA_VERSION = "0.1.0"

SUPPORTED_MAJOR_VERSION = 0

# Digest scheme used by the fingerprint service
FINGERPRINT_ALGORITHM_VERSION = "websketch-fp-sha256-v1"

# Domain prefixes keep full and layout digests apart
DOMAIN_FULL = b"websketch-ir:full:v1\x00"
DOMAIN_LAYOUT = b"websketch-ir:layout:v1\x00"

SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)


def parse_semver(version: str) -> Optional[Tuple[int, int, int]]:
    """Returns (major, minor, patch), or None when the string is not semver."""
    if not isinstance(version, str):
        return None
    match = SEMVER_PATTERN.match(version.strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def is_supported_version(version: str) -> bool:
    parsed = parse_semver(version)
    return parsed is not None and parsed[0] == SUPPORTED_MAJOR_VERSION


def get_version_metadata() -> Dict[str, str]:
    """Get complete version metadata for embedding in artifacts."""
    return {
        "schema": CURRENT_SCHEMA_VERSION,
        "supported_major": str(SUPPORTED_MAJOR_VERSION),
        "fingerprint": FINGERPRINT_ALGORITHM_VERSION,
    }
