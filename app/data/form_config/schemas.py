"""Pydantic schemas for the client form configuration."""
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List, Literal


FieldType = Literal["text", "textarea", "select", "number", "date", "email", "phone", "checkbox"]


class FormField(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1, max_length=100)
    label: str = Field(..., min_length=1, max_length=255)
    type: FieldType = "text"
    required: bool = False
    enabled: bool = True
    options: Optional[List[str]] = None

    @model_validator(mode="after")
    def select_needs_options(self):
        if self.type == "select" and not self.options:
            raise ValueError(f"Select field '{self.name}' needs at least one option")
        return self


class FormSection(BaseModel):
    section: str = Field(..., min_length=1, max_length=255)
    enabled: bool = True
    fields: List[FormField] = Field(default_factory=list)

    @model_validator(mode="after")
    def unique_field_names(self):
        names = [f.name for f in self.fields]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate fields in section '{self.section}': {', '.join(duplicates)}")
        return self


class FormConfigUpdate(BaseModel):
    config: List[FormSection]


class FormConfigResponse(BaseModel):
    config: List[FormSection]
    is_default: bool
