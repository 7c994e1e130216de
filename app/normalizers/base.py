# app/normalizers/base.py
from typing import Any, Dict, Optional, Protocol, Union
from .types import NormalizedSchema, RawSchema

class Normalizer(Protocol):
    def normalize(
        self, raw_schema: Union[RawSchema, Dict[str, Any]], display_name: Optional[str] = None
    ) -> NormalizedSchema:
        """Return a NEW normalized schema. Do not mutate `raw_schema`."""
        ...
