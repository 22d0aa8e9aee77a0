"""
Async constituent service.

Request-level orchestration on top of the normalizer and orchestrator:
result-cache lookup, one in-flight generation per region, regeneration,
batch queries and dashboard summaries. Blocking work (HTTP, LLM SDKs)
runs in worker threads.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from .cache import KIND_CONSTITUENTS, ResultCache
from .census_fetcher import CensusNormalizer, aggregate_profiles
from .geo_tables import DistrictMapper, looks_like_zip
from .models import (
    AGE_BRACKETS,
    OCCUPATION_CATEGORIES,
    OCCUPATION_CATEGORY_LABELS,
    DataProvenance,
    DemographicProfile,
    Persona,
    normalize_education_level,
)
from .orchestrator import PersonaOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_CONSTITUENT_COUNT = 10


@dataclass
class ConstituentBatch:
    """Personas generated for one region together with their profile."""
    region_id: str
    profile: DemographicProfile
    personas: List[Persona]
    source: str
    error: Optional[str] = None
    from_cache: bool = False

    def to_payload(self) -> Dict[str, Any]:
        return {
            "regionId": self.region_id,
            "source": self.source,
            "error": self.error,
            "profile": self.profile.to_dict(),
            "personas": [p.model_dump(mode="json", by_alias=True) for p in self.personas],
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ConstituentBatch":
        """
        Rebuild a cached batch.

        Raises:
            ValueError: If the payload does not match the batch schema
        """
        try:
            profile = DemographicProfile.model_validate(payload["profile"])
            personas = [Persona.model_validate(p) for p in payload["personas"]]
            region_id = payload["regionId"]
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed cached batch: {e}") from e

        return cls(
            region_id=region_id,
            profile=profile.model_copy(update={"provenance": DataProvenance.CACHED}),
            personas=personas,
            source=payload.get("source", "cache"),
            error=payload.get("error"),
            from_cache=True,
        )


def top_occupations(profile: DemographicProfile) -> List[Dict[str, Any]]:
    """Occupation groups with display names, largest share first."""
    rows = [
        {
            "category": key,
            "label": OCCUPATION_CATEGORY_LABELS[key],
            "percentage": profile.occupation_categories.get(key, 0),
        }
        for key in OCCUPATION_CATEGORIES
    ]
    return sorted(rows, key=lambda row: row["percentage"], reverse=True)


def age_group_breakdown(profile: DemographicProfile) -> List[Dict[str, Any]]:
    """Age brackets in order with head count and share of population."""
    groups = profile.age_groups or {}
    total = profile.population or sum(groups.values())
    return [
        {
            "bracket": bracket,
            "count": groups.get(bracket, 0),
            "percentage": round(groups.get(bracket, 0) / total * 100) if total else 0,
        }
        for bracket in AGE_BRACKETS
    ]


class ConstituentService:
    """
    Serves constituent batches per region.

    Concurrent requests for the same region and count share a single
    in-flight task; anything else proceeds independently.
    """

    def __init__(
        self,
        normalizer: CensusNormalizer,
        orchestrator: PersonaOrchestrator,
        cache: Optional[ResultCache] = None,
        mapper: Optional[DistrictMapper] = None,
    ):
        self.normalizer = normalizer
        self.orchestrator = orchestrator
        self.cache = cache
        self.mapper = mapper
        self._inflight: Dict[Tuple[str, int], "asyncio.Task[ConstituentBatch]"] = {}
        self._batches: Dict[str, ConstituentBatch] = {}

    # =========================================================================
    # Batches
    # =========================================================================

    async def get_constituents(self, region_id: str, count: int = DEFAULT_CONSTITUENT_COUNT) -> ConstituentBatch:
        """
        Return the batch for a region, generating it if needed.

        Raises:
            ValueError: If count < 1
        """
        if count < 1:
            raise ValueError(f"count must be at least 1, got {count}")

        batch = self._batches.get(region_id)
        if batch is not None and len(batch.personas) == count:
            return batch

        key = (region_id, count)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._load_batch(region_id, count))
            self._inflight[key] = task
            task.add_done_callback(lambda t, key=key: self._forget_task(key, t))
        else:
            logger.debug(f"Joining in-flight generation for {region_id} (n={count})")

        return await task

    def _forget_task(self, key: Tuple[str, int], task: "asyncio.Task[ConstituentBatch]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def refresh_constituents(self, region_id: str, count: int = DEFAULT_CONSTITUENT_COUNT) -> ConstituentBatch:
        """Drop every cached layer for a region and regenerate."""
        pending = [task for (region, _), task in self._inflight.items() if region == region_id]
        if pending:
            await asyncio.gather(*pending)

        self.normalizer.invalidate(region_id)
        self._batches.pop(region_id, None)
        if self.cache is not None:
            await asyncio.to_thread(self.cache.delete, region_id, KIND_CONSTITUENTS)
        logger.info(f"Regenerating constituents for {region_id}")

        return await self.get_constituents(region_id, count)

    async def _load_batch(self, region_id: str, count: int) -> ConstituentBatch:
        cached = await self._cached_batch(region_id, count)
        if cached is not None:
            self._batches[region_id] = cached
            return cached

        profile = await self.get_district_profile(region_id)
        result = await asyncio.to_thread(self.orchestrator.generate_personas, profile, count)
        batch = ConstituentBatch(
            region_id=region_id,
            profile=profile,
            personas=result.personas,
            source=result.source,
            error=result.error,
        )

        # Batches built on fallback statistics are not persisted
        if self.cache is not None and not profile.is_fallback:
            await asyncio.to_thread(self.cache.put, region_id, KIND_CONSTITUENTS, batch.to_payload())

        self._batches[region_id] = batch
        return batch

    async def _cached_batch(self, region_id: str, count: int) -> Optional[ConstituentBatch]:
        if self.cache is None:
            return None
        payload = await asyncio.to_thread(self.cache.get, region_id, KIND_CONSTITUENTS)
        if not payload:
            return None
        try:
            batch = ConstituentBatch.from_payload(payload)
        except (ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable cached batch for {region_id}: {e}")
            return None
        if len(batch.personas) != count:
            logger.debug(f"Cached batch for {region_id} has {len(batch.personas)} personas, need {count}")
            return None
        logger.info(f"Using cached constituents for {region_id}")
        return batch

    # =========================================================================
    # Profiles
    # =========================================================================

    async def get_district_profile(self, region_id: str) -> DemographicProfile:
        """
        Profile for a region.

        When a district lookup falls back and a mapper is configured, the
        district's ZIP profiles are fetched concurrently and merged.
        """
        profile = await asyncio.to_thread(self.normalizer.normalize, region_id)
        if not profile.is_fallback or self.mapper is None or looks_like_zip(region_id):
            return profile

        zips = self.mapper.get_zip_codes_for_district(region_id)
        if not zips:
            return profile

        logger.info(f"Aggregating {len(zips)} ZIP profiles for {region_id}")
        zip_profiles = await asyncio.gather(
            *(asyncio.to_thread(self.normalizer.normalize, zip_code) for zip_code in zips)
        )
        live = [p for p in zip_profiles if not p.is_fallback]
        if not live:
            return profile
        return aggregate_profiles(live, region_id)

    # =========================================================================
    # Queries over the current batch
    # =========================================================================

    def current_batch(self, region_id: str) -> Optional[ConstituentBatch]:
        return self._batches.get(region_id)

    def _personas(self, region_id: str) -> List[Persona]:
        batch = self._batches.get(region_id)
        return list(batch.personas) if batch else []

    def get_constituent_by_id(self, region_id: str, constituent_id: str) -> Optional[Persona]:
        for persona in self._personas(region_id):
            if persona.id == constituent_id:
                return persona
        return None

    def filter_by_race_ethnicity(self, region_id: str, race_ethnicity: str) -> List[Persona]:
        wanted = race_ethnicity.strip().lower()
        return [p for p in self._personas(region_id) if p.race_ethnicity.lower() == wanted]

    def filter_by_income_range(self, region_id: str, min_income: int, max_income: int) -> List[Persona]:
        return [p for p in self._personas(region_id) if min_income <= p.annual_income <= max_income]

    def filter_by_education(self, region_id: str, education: str) -> List[Persona]:
        level = normalize_education_level(education)
        if level is None:
            return []
        return [p for p in self._personas(region_id) if p.education_level == level]

    def filter_by_age_range(self, region_id: str, min_age: int, max_age: int) -> List[Persona]:
        return [p for p in self._personas(region_id) if min_age <= p.age <= max_age]
