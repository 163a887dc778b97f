"""
JSON Schema validation for item sections.
Reports every missing or malformed field of a resolved item at once, before the
typed model is built.
"""

import json
from pathlib import Path
from typing import Any

from jsonschema import Draft7Validator

_NON_EMPTY = {"type": "string", "minLength": 1, "pattern": "\\S"}

# JSON Schema for a resolved item section
ITEM_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Lifter Item",
    "description": "A tracked executable after template merge and substitution",
    "type": "object",
    "properties": {
        "method": {
            "type": "string",
            "enum": ["html_scrape", "api_json"],
            "description": "Source strategy (defaults to html_scrape)",
        },
        "template": {
            "type": "string",
            "description": "Name of a [template:<name>] section",
        },
        "page_url": {
            **_NON_EMPTY,
            "pattern": "^https?://",
            "description": "Release page (html_scrape) or API endpoint (api_json)",
        },
        "anchor_tag": {
            **_NON_EMPTY,
            "description": "CSS selector or JSONPath locating asset links",
        },
        "anchor_text": {
            "type": "string",
            "description": "Regex fully matching the one wanted asset",
        },
        "version_tag": {
            **_NON_EMPTY,
            "description": "CSS selector or JSONPath locating the version text",
        },
        "target_filename_to_extract_from_archive": {
            "type": "string",
            "description": "Entry name inside a downloaded archive",
        },
        "desired_filename": {
            "type": "string",
            "description": "Installed filename",
        },
        "version": {
            "type": "string",
            "description": "Last recorded version",
        },
    },
    "required": ["page_url", "anchor_tag", "version_tag"],
    "additionalProperties": {"type": "string"},
}


def validate_item_fields(fields: dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate resolved item fields against the JSON schema.

    Args:
        fields: The merged and substituted field mapping of one item.

    Returns:
        Tuple of (is_valid, error_messages)
    """
    validator = Draft7Validator(ITEM_SCHEMA)
    errors = sorted(validator.iter_errors(fields), key=lambda e: list(e.path))

    if not errors:
        return True, []

    error_messages = []
    for error in errors:
        path = ".".join(str(p) for p in error.path) if error.path else "section"
        error_messages.append(f"{path}: {error.message}")

    return False, error_messages


def export_schema(output_path: Path) -> None:
    """
    Export JSON schema to file for external validation tools.

    Args:
        output_path: Path to save schema file
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(ITEM_SCHEMA, f, indent=2)
