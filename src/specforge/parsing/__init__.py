"""JSON extraction and repair for backend responses."""

from specforge.parsing.json_extract import extract_json, strip_code_fence
from specforge.parsing.json_repair import repair_truncated_json

__all__ = ["extract_json", "repair_truncated_json", "strip_code_fence"]
