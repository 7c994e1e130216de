# app/normalizers/types.py
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Category = Literal["creatable", "link", "manual", "autoSystem", "inverseLink"]
CATEGORIES = ("creatable", "link", "manual", "autoSystem", "inverseLink")


class _CamelModel(BaseModel):
    # JSON artifact keys are camelCase, attributes stay snake_case.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------
# Raw metadata as returned by GET /v0/meta/bases/{baseId}/tables
# ---------------------------------------------------------------------
class RawField(_CamelModel):
    id: str
    name: str
    type: str
    description: Optional[str] = None
    options: Optional[Dict[str, Any]] = None


class RawTable(_CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    primary_field_id: Optional[str] = None
    fields: List[RawField] = []


class RawSchema(_CamelModel):
    tables: List[RawTable] = []


# ---------------------------------------------------------------------
# Normalized, base-independent schema (the persisted artifact)
# ---------------------------------------------------------------------
class _FieldBase(_CamelModel):
    model_config = ConfigDict(frozen=True)

    original_id: str
    name: str
    type: str
    description: str = ""


class CreatableField(_FieldBase):
    category: Literal["creatable"] = "creatable"
    options: Optional[Dict[str, Any]] = None


class LinkField(_FieldBase):
    category: Literal["link"] = "link"
    options: Optional[Dict[str, Any]] = None
    linked_table_name: str
    prefers_single_record_link: bool = False


class ManualField(_FieldBase):
    category: Literal["manual"] = "manual"
    manual_type: str
    manual_description: str
    manual_cell_instructions: str
    original_options: Dict[str, Any] = {}


class AutoSystemField(_FieldBase):
    category: Literal["autoSystem"] = "autoSystem"


class InverseLinkField(_FieldBase):
    category: Literal["inverseLink"] = "inverseLink"
    options: Optional[Dict[str, Any]] = None
    linked_table_name: Optional[str] = None


NormalizedField = Annotated[
    Union[CreatableField, LinkField, ManualField, AutoSystemField, InverseLinkField],
    Field(discriminator="category"),
]


class NormalizedTable(_CamelModel):
    model_config = ConfigDict(frozen=True)

    original_id: str
    name: str
    description: str = ""
    primary_field_id: Optional[str] = None
    creatable_fields: List[CreatableField] = []
    link_fields: List[LinkField] = []
    manual_fields: List[ManualField] = []
    auto_system_fields: List[AutoSystemField] = []
    inverse_link_fields: List[InverseLinkField] = []

    def all_fields(self) -> List[NormalizedField]:
        return [
            *self.creatable_fields,
            *self.link_fields,
            *self.manual_fields,
            *self.auto_system_fields,
            *self.inverse_link_fields,
        ]

    def primary_field(self) -> Optional[NormalizedField]:
        for f in self.all_fields():
            if f.original_id == self.primary_field_id:
                return f
        return None


class NormalizedSchema(_CamelModel):
    model_config = ConfigDict(frozen=True)

    name: str = "Airtable Base"
    exported_at: datetime
    table_count: int
    tables: List[NormalizedTable] = []
    warnings: List[str] = []
    primary_table: Optional[str] = None
    # Tables left out of a per-table subset; links to them are skipped, not failed.
    out_of_scope_tables: List[str] = []

    def table(self, name: str) -> Optional[NormalizedTable]:
        return next((t for t in self.tables if t.name == name), None)

    def to_json_dict(self) -> Dict[str, Any]:
        """Artifact form: camelCase keys, JSON-native values."""
        return self.model_dump(mode="json", by_alias=True)
