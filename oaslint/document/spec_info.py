"""Specification version sniffing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from oaslint.document.nodes import get_value, is_mapping, scalar_value

FORMAT_OAS2 = "oas2"
FORMAT_OAS3 = "oas3"
FORMAT_OAS3_0 = "oas3_0"
FORMAT_OAS3_1 = "oas3_1"

ALL_FORMATS = [FORMAT_OAS2, FORMAT_OAS3, FORMAT_OAS3_1]


@dataclass
class SpecInfo:
    """What kind of document we are looking at."""

    spec_type: str = ""  # openapi | swagger | ""
    version: str = ""
    format: str = ""  # oas2 | oas3 | oas3_1 | ""
    file_type: str = "yaml"  # yaml | json
    filename: str = ""

    @property
    def is_oas2(self) -> bool:
        return self.format == FORMAT_OAS2

    @property
    def is_oas3(self) -> bool:
        return self.format in (FORMAT_OAS3, FORMAT_OAS3_1)

    @property
    def version_error(self) -> str | None:
        """Human message when the version is missing or unsupported."""
        if not self.spec_type:
            return "unable to determine specification type: no 'openapi' or 'swagger' field"
        if not self.format:
            return f"unsupported {self.spec_type} version '{self.version}'"
        return None


def _version_text(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.1f}"
    return str(value).strip()


def detect_spec_info(root: Any, raw: bytes | str = b"", filename: str = "") -> SpecInfo:
    """Inspect the root mapping for ``openapi`` / ``swagger``."""
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    info = SpecInfo(
        file_type="json" if text.lstrip().startswith("{") else "yaml",
        filename=filename,
    )
    if not is_mapping(root):
        return info

    node = get_value(root, "openapi")
    if node is not None:
        info.spec_type = "openapi"
        info.version = _version_text(scalar_value(node))
        if info.version.startswith("3.0"):
            info.format = FORMAT_OAS3
        elif info.version.startswith("3.1"):
            info.format = FORMAT_OAS3_1
        return info

    node = get_value(root, "swagger")
    if node is not None:
        info.spec_type = "swagger"
        info.version = _version_text(scalar_value(node))
        if info.version in ("2", "2.0"):
            info.format = FORMAT_OAS2
    return info


def formats_match(rule_formats: list[str], spec_format: str) -> bool:
    """Whether a rule restricted to *rule_formats* applies to *spec_format*."""
    if not rule_formats or not spec_format:
        return True
    for fmt in rule_formats:
        if fmt == spec_format:
            return True
        if fmt == FORMAT_OAS3 and spec_format in (FORMAT_OAS3, FORMAT_OAS3_1):
            return True
        if fmt == FORMAT_OAS3_0 and spec_format == FORMAT_OAS3:
            return True
    return False
