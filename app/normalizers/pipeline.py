from .base import Normalizer
from .schema import AirtableSchemaNormalizer

def get_default_normalizer() -> Normalizer:
    """Normalizer used by the export endpoint."""
    return AirtableSchemaNormalizer()
