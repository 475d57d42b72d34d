"""Template engine domain models.

Pydantic models for extracted placeholders and their filled values.
These models are kept here to avoid circular imports with the API layer.
"""

from pydantic import BaseModel, Field

LoopRow = dict[str, str]


class PlaceholderField(BaseModel):
    """A placeholder detected in a template."""

    key: str = Field(description="Placeholder identifier")
    description: str | None = Field(
        default=None, description="Fill instruction written after the colon"
    )
    is_loop: bool | None = Field(
        default=None, description="True when the key is a repeated group"
    )
    fields: list[str] | None = Field(
        default=None, description="Child field names of a loop, in first-seen order"
    )
    field_descriptions: dict[str, str] = Field(
        default_factory=dict, description="First description seen per loop child"
    )

    def add_field(self, name: str, description: str | None = None) -> None:
        """Append a loop child, ignoring duplicates."""
        if self.fields is None:
            self.fields = []
        if name not in self.fields:
            self.fields.append(name)
        if description and name not in self.field_descriptions:
            self.field_descriptions[name] = description

    def set_description(self, description: str | None) -> None:
        """Set the description unless one was already recorded."""
        if description and not self.description:
            self.description = description


class FilledPlaceholder(PlaceholderField):
    """A placeholder bound to its runtime value."""

    value: str | list[LoopRow] = Field(
        default="", description="String for scalars, list of row objects for loops"
    )


class ExtractionResult(BaseModel):
    """Outcome of scanning a template for placeholders."""

    fields: list[PlaceholderField] = Field(default_factory=list)
    errors: list[str] = Field(
        default_factory=list, description="Structural errors; extraction failed when non-empty"
    )
    warnings: list[str] = Field(
        default_factory=list, description="Recoverable problems such as malformed dotted tags"
    )

    @property
    def ok(self) -> bool:
        """Return True when extraction produced a usable field list."""
        return not self.errors
