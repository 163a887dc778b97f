"""
Pydantic models for templates and tracked items.
A resolved item is immutable: it is built once, before any fetch, and never mutated.
"""

import re
from enum import Enum

from pathvalidate import ValidationError as FilenameValidationError
from pathvalidate import validate_filename
from pydantic import BaseModel, Field, field_validator, model_validator


class Method(str, Enum):
    """Selects which source strategy fetches and matches an item."""

    HTML_SCRAPE = "html_scrape"
    API_JSON = "api_json"


# Keys that are never used as substitution targets: one selects the template,
# the other is the durable state written back by the committer.
CONTROL_FIELDS = frozenset({"template", "version"})


class Template(BaseModel):
    """A named, reusable set of default fields shared by multiple items."""

    name: str
    fields: dict[str, str] = Field(default_factory=dict)

    class Config:
        """Pydantic model configuration."""

        frozen = True


class ItemDeclaration(BaseModel):
    """The raw fields declared in an item's own INI section."""

    name: str
    fields: dict[str, str] = Field(default_factory=dict)

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @property
    def template_ref(self) -> str | None:
        return self.fields.get("template") or None

    @property
    def recorded_version(self) -> str | None:
        return self.fields.get("version")


class ResolvedItem(BaseModel):
    """
    A fully resolved item, ready for the pipeline.

    Field aliases are the user-facing INI keys, so a resolved field mapping can
    be validated directly into this model.
    """

    name: str
    method: Method = Method.HTML_SCRAPE
    page_url: str = Field(..., min_length=1)
    query_selector: str = Field(..., alias="anchor_tag", min_length=1)
    version_locator: str = Field(..., alias="version_tag", min_length=1)
    anchor_text_pattern: str | None = Field(None, alias="anchor_text")
    target_entry_name: str = Field(
        ..., alias="target_filename_to_extract_from_archive", min_length=1
    )
    desired_filename: str = Field(..., min_length=1)
    recorded_version: str | None = Field(None, alias="version")
    template_ref: str | None = Field(None, alias="template")
    resolved_fields: dict[str, str] = Field(default_factory=dict, repr=False)

    class Config:
        """Pydantic model configuration."""

        frozen = True
        populate_by_name = True
        str_strip_whitespace = True

    @model_validator(mode="before")
    @classmethod
    def apply_filename_defaults(cls, data):
        """Defaults the archive entry to the item name and the filename to the entry."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        entry_key = "target_filename_to_extract_from_archive"
        if not data.get(entry_key) and not data.get("target_entry_name"):
            data[entry_key] = data.get("name")
        if not data.get("desired_filename"):
            data["desired_filename"] = data.get(entry_key) or data.get(
                "target_entry_name"
            )
        if data.get("method") == "":
            data.pop("method")
        if data.get("anchor_text") == "":
            data["anchor_text"] = None
        return data

    @field_validator("anchor_text_pattern")
    @classmethod
    def validate_anchor_pattern(cls, v: str | None) -> str | None:
        """Ensures the anchor text pattern is a valid regular expression."""
        if v is None:
            return v
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"anchor_text is not a valid regular expression: {e}")
        return v

    @field_validator("desired_filename", "target_entry_name")
    @classmethod
    def validate_filename(cls, v: str) -> str:
        """Only bare filenames are allowed; the output directory comes from settings."""
        try:
            validate_filename(v, platform="universal")
        except FilenameValidationError as e:
            raise ValueError(f"'{v}' is not a valid filename: {e}")
        return v

    @property
    def anchor_regex(self) -> re.Pattern | None:
        """The compiled anchor pattern; callers apply it with ``fullmatch``."""
        if not self.anchor_text_pattern:
            return None
        return re.compile(self.anchor_text_pattern)
