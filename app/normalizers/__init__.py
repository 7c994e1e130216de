from .pipeline import get_default_normalizer
from .schema import AirtableSchemaNormalizer
from .classify import classify_field
from .instructions import Instructions, build_instructions
from .subset import subset_for_table
from .types import (
    NormalizedField,
    NormalizedSchema,
    NormalizedTable,
    CreatableField,
    LinkField,
    ManualField,
    AutoSystemField,
    InverseLinkField,
    RawSchema,
)
from .base import Normalizer

__all__ = [
    "get_default_normalizer",
    "AirtableSchemaNormalizer",
    "classify_field",
    "Instructions",
    "build_instructions",
    "subset_for_table",
    "NormalizedField",
    "NormalizedSchema",
    "NormalizedTable",
    "CreatableField",
    "LinkField",
    "ManualField",
    "AutoSystemField",
    "InverseLinkField",
    "RawSchema",
    "Normalizer",
]
