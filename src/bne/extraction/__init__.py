"""BNE Extraction Module."""
from .client import ExtractionClient, NameExtractor
from .heuristic import has_extraction_potential
from .normalize import normalize
from .orchestrator import BatchOrchestrator
from .processor import UnitProcessor

__all__ = [
    "ExtractionClient",
    "NameExtractor",
    "has_extraction_potential",
    "normalize",
    "BatchOrchestrator",
    "UnitProcessor",
]
