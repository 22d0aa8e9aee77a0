"""
District Constituent Twins

Synthetic "digital twin" constituents for a U.S. congressional district
or ZIP code, drawn from American Community Survey 5-year estimates.

Basic usage:
    from district_twins import CensusNormalizer, PersonaSampler, PersonaOrchestrator
    from district_twins.llm_client import create_llm_client

    # Census profile (falls back to plausible values when the API is down)
    profile = CensusNormalizer(seed=42).normalize("CA-12")

    # Local sampling only
    personas = PersonaSampler(seed=42).sample_personas(profile, 10)

    # LLM-authored personas with sampler fallback
    orchestrator = PersonaOrchestrator(create_llm_client("anthropic"))
    result = orchestrator.generate_personas(profile, 10)

CLI usage:
    python -m district_twins profile CA-12
    python -m district_twins generate CA-12 -n 10 --provider groq --format json,csv
"""

__version__ = "1.0.0"

from .exceptions import (
    DistrictTwinsError,
    ResolutionError,
    UpstreamError,
    EmptyDistributionError,
    LLMGenerationError,
    ExportError,
    ConfigurationError,
)
from .models import (
    AgeConstraints,
    DataProvenance,
    DemographicProfile,
    Persona,
    LLMPersonaRecord,
)
from .config import Settings
from .geo_tables import DistrictMapper, parse_region_id
from .census_fetcher import CensusNormalizer, aggregate_profiles
from .sampler import PersonaSampler
from .orchestrator import GenerationResult, PersonaOrchestrator
from .policy import PolicySummarizer, structured_fallback_summary
from .cache import FileResultCache, RemoteResultCache
from .service import ConstituentBatch, ConstituentService
from .exporters import export_formats
from .statistical_tests import evaluate_sample

__all__ = [
    "DistrictTwinsError",
    "ResolutionError",
    "UpstreamError",
    "EmptyDistributionError",
    "LLMGenerationError",
    "ExportError",
    "ConfigurationError",
    "AgeConstraints",
    "DataProvenance",
    "DemographicProfile",
    "Persona",
    "LLMPersonaRecord",
    "Settings",
    "DistrictMapper",
    "parse_region_id",
    "CensusNormalizer",
    "aggregate_profiles",
    "PersonaSampler",
    "GenerationResult",
    "PersonaOrchestrator",
    "PolicySummarizer",
    "structured_fallback_summary",
    "FileResultCache",
    "RemoteResultCache",
    "ConstituentBatch",
    "ConstituentService",
    "export_formats",
    "evaluate_sample",
]
