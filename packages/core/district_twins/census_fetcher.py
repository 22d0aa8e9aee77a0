"""
Census ACS fetcher and profile normalizer.

Turns a ZIP code or congressional district into a DemographicProfile:
- Fetches American Community Survey 5-year estimates
- Derives percentage mappings from raw counts
- Retries transient failures with exponential backoff
- Falls back to plausible literal profiles so callers never see an error
"""

import logging
import math
import random
import time
from typing import Any, Dict, Iterable, List, Optional

import requests

from .config import CENSUS_API_BASE, DEFAULT_HTTP_TIMEOUT
from .exceptions import EmptyDistributionError, ResolutionError, UpstreamError
from .geo_tables import RegionQuery, looks_like_zip, parse_region_id
from .models import (
    AGE_BRACKETS,
    EDUCATION_LEVELS,
    OCCUPATION_CATEGORIES,
    RACE_CATEGORIES,
    DataProvenance,
    DemographicProfile,
)

logger = logging.getLogger(__name__)


# Variable codes in request order; responses are parsed positionally.
CENSUS_VARIABLES = [
    ("B01003_001E", "total_population"),
    ("B03002_003E", "white"),
    ("B03002_004E", "black"),
    ("B03002_006E", "asian"),
    ("B03002_012E", "hispanic"),
    ("B19013_001E", "median_income"),
    ("B15003_022E", "bachelors"),
    ("B15003_023E", "masters"),
    ("B15003_024E", "professional"),
    ("B15003_025E", "doctorate"),
    ("B25003_002E", "owner_occupied"),
    ("B25003_003E", "renter_occupied"),
    ("B17001_002E", "below_poverty"),
    ("C24010_001E", "employed_total"),
    ("C24010_002E", "management"),
    ("C24010_003E", "service"),
    ("C24010_004E", "salesOffice"),
    ("C24010_005E", "construction"),
    ("C24010_006E", "production"),
    ("B01002_001E", "median_age"),
]

# Variables kept fractional; every other cell is a whole count
FRACTIONAL_VARIABLES = frozenset({"median_age"})

# Share of population per age bracket when only a total is known
AGE_BRACKET_SHARES = {
    "18-24": 0.12,
    "25-34": 0.18,
    "35-44": 0.16,
    "45-54": 0.15,
    "55-64": 0.14,
    "65-74": 0.12,
    "75+": 0.13,
}

# The ACS call above has no sub-college attainment counts; these are
# illustrative constants, not measurements.
ESTIMATED_LOWER_EDUCATION = {
    "lessThanHighSchool": 10,
    "highSchool": 28,
    "someCollege": 22,
}
BACHELORS_SHARE_OF_DEGREES = 0.6

DEFAULT_MEDIAN_INCOME = 50000
DEFAULT_MEDIAN_AGE = 38.0

FIXED_FALLBACK = {
    "population": 750000,
    "median_income": 65000,
    "median_age": 38.0,
    "education_levels": {
        "lessThanHighSchool": 10,
        "highSchool": 25,
        "someCollege": 20,
        "bachelors": 30,
        "graduate": 15,
    },
    "race_ethnicity": {"white": 60, "black": 12, "hispanic": 18, "asian": 6, "other": 4},
    "age_groups": {
        "18-24": 90000,
        "25-34": 135000,
        "35-44": 120000,
        "45-54": 112500,
        "55-64": 105000,
        "65-74": 90000,
        "75+": 97500,
    },
    "occupation_categories": {
        "management": 25,
        "service": 20,
        "salesOffice": 30,
        "construction": 10,
        "production": 15,
    },
    "homeownership_rate": 65,
    "poverty_rate": 12,
    "college_rate": 35,
    "income_distribution": {
        "Under $25,000": 15,
        "$25,000-$50,000": 25,
        "$50,000-$100,000": 35,
        "$100,000-$200,000": 20,
        "Over $200,000": 5,
    },
}


def _parse_value(cell: Any) -> Optional[float]:
    """Parse a Census cell; negative annotation codes and junk are missing."""
    if cell is None:
        return None
    try:
        value = float(cell)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or value < 0:
        return None
    return value


def _parse_count(cell: Any) -> Optional[int]:
    value = _parse_value(cell)
    return None if value is None else int(value)


def parse_row(row: List[Any]) -> Dict[str, Any]:
    """Map a positional ACS data row onto variable names."""
    values = {}
    for i, (_, name) in enumerate(CENSUS_VARIABLES):
        parse = _parse_value if name in FRACTIONAL_VARIABLES else _parse_count
        values[name] = parse(row[i])
    return values


def _pct(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole > 0 else 0


def profile_from_values(region_id: str, values: Dict[str, Any]) -> DemographicProfile:
    """
    Derive a profile from parsed ACS values keyed by variable name.

    Raises:
        UpstreamError: If the population is missing or zero
        EmptyDistributionError: If a percentage mapping sums to zero
    """
    population = values.get("total_population") or 0
    if population <= 0:
        raise UpstreamError(f"Census returned zero population for {region_id}", service="census")

    def count(name: str) -> int:
        return values.get(name) or 0

    named_race = {key: count(key) for key in ("white", "black", "hispanic", "asian")}
    other = max(0, population - sum(named_race.values()))
    race = {key: math.floor(n / population * 100) for key, n in named_race.items()}
    race["other"] = math.floor(other / population * 100)

    degree_holders = sum(count(k) for k in ("bachelors", "masters", "professional", "doctorate"))
    degree_pct = _pct(degree_holders, population)
    bachelors_pct = round(degree_pct * BACHELORS_SHARE_OF_DEGREES)
    education = dict(ESTIMATED_LOWER_EDUCATION)
    education["bachelors"] = bachelors_pct
    education["graduate"] = degree_pct - bachelors_pct

    employed = count("employed_total")
    occupations = {key: _pct(count(key), employed) for key in OCCUPATION_CATEGORIES}

    for name, mapping in (("race", race), ("education", education), ("occupation", occupations)):
        if sum(mapping.values()) <= 0:
            raise EmptyDistributionError(
                f"Census returned no usable {name} counts for {region_id}", service="census"
            )

    owner, renter = count("owner_occupied"), count("renter_occupied")
    poverty_rate = _pct(count("below_poverty"), population)

    median_income = values.get("median_income")
    median_age = values.get("median_age")

    return DemographicProfile(
        region_id=region_id,
        population=population,
        median_income=median_income if median_income is not None else DEFAULT_MEDIAN_INCOME,
        median_age=float(median_age) if median_age else DEFAULT_MEDIAN_AGE,
        age_groups={b: math.floor(population * share) for b, share in AGE_BRACKET_SHARES.items()},
        race_ethnicity=race,
        education_levels=education,
        occupation_categories=occupations,
        homeownership_rate=_pct(owner, owner + renter),
        poverty_rate=poverty_rate,
        college_rate=degree_pct,
        income_distribution={
            "Under $25,000": round(poverty_rate * 1.5),
            "$25,000-$50,000": 25,
            "$50,000-$100,000": 35,
            "$100,000-$200,000": 25,
            "Over $200,000": 10,
        },
        provenance=DataProvenance.CENSUS_API,
    )


def fixed_fallback_profile(region_id: str) -> DemographicProfile:
    """Representative ~750k-resident district used when Census is unavailable."""
    return DemographicProfile(region_id=region_id, provenance=DataProvenance.FALLBACK_FIXED, **FIXED_FALLBACK)


def randomized_fallback_profile(region_id: str, rng: random.Random) -> DemographicProfile:
    """Plausible per-ZIP values drawn from fixed ranges."""
    def draw(low: int, span: int) -> int:
        return low + rng.randrange(span)

    return DemographicProfile(
        region_id=region_id,
        population=draw(200000, 500000),
        median_income=draw(40000, 30000),
        median_age=float(draw(30, 20)),
        education_levels={
            "lessThanHighSchool": draw(5, 15),
            "highSchool": draw(20, 25),
            "someCollege": draw(15, 20),
            "bachelors": draw(20, 25),
            "graduate": draw(10, 15),
        },
        race_ethnicity={
            "white": draw(30, 40),
            "black": draw(10, 20),
            "hispanic": draw(15, 25),
            "asian": draw(10, 20),
            "other": draw(5, 10),
        },
        age_groups={
            "18-24": draw(20000, 50000),
            "25-34": draw(40000, 80000),
            "35-44": draw(30000, 70000),
            "45-54": draw(25000, 60000),
            "55-64": draw(20000, 50000),
            "65-74": draw(15000, 40000),
            "75+": draw(10000, 30000),
        },
        occupation_categories={
            "management": draw(15, 25),
            "service": draw(10, 20),
            "salesOffice": draw(15, 25),
            "construction": draw(5, 15),
            "production": draw(5, 15),
        },
        homeownership_rate=draw(50, 30),
        poverty_rate=draw(5, 15),
        college_rate=draw(20, 20),
        income_distribution={
            "Under $25,000": draw(10, 20),
            "$25,000-$50,000": draw(20, 15),
            "$50,000-$100,000": draw(30, 20),
            "$100,000-$200,000": draw(20, 15),
            "Over $200,000": draw(5, 10),
        },
        provenance=DataProvenance.FALLBACK_RANDOMIZED,
    )


def aggregate_profiles(profiles: List[DemographicProfile], region_id: str) -> DemographicProfile:
    """
    Population-weighted merge of several ZIP profiles into one region.

    Counts (population, age groups) are summed; percentage mappings and
    median income are weighted by population. The merged profile is live
    only if every input was live.

    Raises:
        ValueError: If profiles is empty
    """
    if not profiles:
        raise ValueError("Cannot aggregate an empty list of profiles")

    total_population = sum(p.population for p in profiles)
    weights = [p.population for p in profiles] if total_population > 0 else [1] * len(profiles)
    weight_sum = sum(weights)

    def weighted_mapping(attr: str, keys: Iterable[str]) -> Dict[str, int]:
        merged = {}
        for key in keys:
            total = sum(getattr(p, attr).get(key, 0) * w for p, w in zip(profiles, weights))
            merged[key] = round(total / weight_sum)
        return merged

    def weighted_scalar(attr: str) -> Optional[int]:
        present = [(getattr(p, attr), w) for p, w in zip(profiles, weights) if getattr(p, attr) is not None]
        if not present:
            return None
        return round(sum(v * w for v, w in present) / sum(w for _, w in present))

    age_groups = None
    if any(p.age_groups for p in profiles):
        age_groups = {
            bracket: sum((p.age_groups or {}).get(bracket, 0) for p in profiles)
            for bracket in AGE_BRACKETS
        }

    income_keys: List[str] = []
    for p in profiles:
        for key in (p.income_distribution or {}):
            if key not in income_keys:
                income_keys.append(key)
    income_distribution = None
    if income_keys:
        income_distribution = {
            key: round(sum((p.income_distribution or {}).get(key, 0) * w for p, w in zip(profiles, weights)) / weight_sum)
            for key in income_keys
        }

    live = all(p.provenance in (DataProvenance.CENSUS_API, DataProvenance.CACHED) for p in profiles)

    return DemographicProfile(
        region_id=region_id,
        population=total_population,
        median_income=weighted_scalar("median_income"),
        median_age=float(sum(p.median_age * w for p, w in zip(profiles, weights)) / weight_sum),
        age_groups=age_groups,
        race_ethnicity=weighted_mapping("race_ethnicity", RACE_CATEGORIES),
        education_levels=weighted_mapping("education_levels", EDUCATION_LEVELS),
        occupation_categories=weighted_mapping("occupation_categories", OCCUPATION_CATEGORIES),
        homeownership_rate=weighted_scalar("homeownership_rate"),
        poverty_rate=weighted_scalar("poverty_rate"),
        college_rate=weighted_scalar("college_rate"),
        income_distribution=income_distribution,
        provenance=DataProvenance.CENSUS_API if live else DataProvenance.FALLBACK_RANDOMIZED,
    )


class CensusNormalizer:
    """
    Resolves regions to demographic profiles with a fallback chain.

    Tries: profile cache -> Census ACS API -> fallback literal.
    ``normalize`` never raises; failures are logged and replaced by a
    randomized profile (ZIP input) or the fixed district profile.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 1.0,
        session: Optional[requests.Session] = None,
        seed: Optional[int] = None,
    ):
        """
        Initialize the normalizer.

        Args:
            base_url: ACS endpoint (default: 2021 ACS 5-year)
            api_key: Optional Census API key sent as ``key=``
            timeout: Per-request timeout in seconds
            max_retries: Attempts for transient failures
            backoff_factor: Factor for exponential backoff (1.0 = 1s, 2s, 4s...)
            session: requests session to reuse (injectable for tests)
            seed: Seed for randomized fallback profiles
        """
        self.base_url = base_url or CENSUS_API_BASE
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.session = session or requests.Session()
        self.seed = seed
        self._rng = random.Random(seed)
        self._profiles: Dict[str, DemographicProfile] = {}

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "CensusNormalizer":
        return cls(
            base_url=settings.census_api_base,
            api_key=settings.census_api_key,
            timeout=settings.http_timeout,
            **kwargs,
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def normalize(self, region_id: str) -> DemographicProfile:
        """Return the profile for a ZIP code or district; never raises."""
        cached = self._profiles.get(region_id)
        if cached is not None:
            logger.debug(f"Profile cache hit for {region_id}")
            return cached

        try:
            query = parse_region_id(region_id)
            values = self.fetch_values(query)
            profile = profile_from_values(query.region_id, values)
        except EmptyDistributionError as e:
            logger.warning(f"Census data for {region_id} is incomplete: {e}")
            return fixed_fallback_profile(region_id)
        except ResolutionError as e:
            logger.warning(f"Could not resolve {region_id!r}: {e}")
            return self.fallback_profile(region_id)
        except UpstreamError as e:
            logger.warning(f"Census lookup failed for {region_id}: {e}")
            return self.fallback_profile(region_id)

        self._profiles[region_id] = profile
        logger.info(f"Fetched Census profile for {region_id} (population {profile.population})")
        return profile

    def fallback_profile(self, region_id: str) -> DemographicProfile:
        if looks_like_zip(region_id or ""):
            logger.info(f"Using randomized fallback profile for ZIP {region_id}")
            return randomized_fallback_profile(region_id, self._fallback_rng(region_id))
        logger.info(f"Using fixed fallback profile for {region_id!r}")
        return fixed_fallback_profile(region_id)

    def _fallback_rng(self, region_id: str) -> random.Random:
        # Seeded: one stream per ZIP
        if self.seed is None:
            return self._rng
        return random.Random(f"{self.seed}:{region_id}")

    def invalidate(self, region_id: str) -> bool:
        """Drop one cached profile; returns True if something was removed."""
        return self._profiles.pop(region_id, None) is not None

    def clear_cache(self) -> None:
        self._profiles.clear()

    def cached_regions(self) -> List[str]:
        return list(self._profiles.keys())

    # =========================================================================
    # Fetching
    # =========================================================================

    def build_params(self, query: RegionQuery) -> Dict[str, str]:
        params = {"get": ",".join(code for code, _ in CENSUS_VARIABLES)}
        params.update(query.geography_params())
        if self.api_key:
            params["key"] = self.api_key
        return params

    def fetch_values(self, query: RegionQuery) -> Dict[str, Any]:
        """
        Fetch and positionally parse the ACS row for a geography.

        Raises:
            UpstreamError: On network failure, non-2xx status or a
                malformed body
        """
        data = self._make_request(self.build_params(query))

        if not isinstance(data, list) or len(data) < 2:
            raise UpstreamError(f"No data rows returned for {query.region_id}", service="census")

        row = data[1]
        if not isinstance(row, list) or len(row) < len(CENSUS_VARIABLES):
            raise UpstreamError(f"Malformed data row for {query.region_id}", service="census")

        return parse_row(row)

    def _make_request(self, params: Dict[str, str]) -> Any:
        """
        GET the ACS endpoint with retry logic.

        Timeouts, connection errors, 5xx and 429 are retried with
        exponential backoff; other 4xx fail immediately.
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                response = self.session.get(self.base_url, params=params, timeout=self.timeout)
                response.raise_for_status()
                if not response.content or not response.content.strip():
                    raise UpstreamError("Empty response body", service="census", status_code=response.status_code)
                return response.json()

            except requests.exceptions.HTTPError as e:
                status_code = e.response.status_code if e.response is not None else 0

                # Don't retry on client errors (4xx) except 429 (rate limit)
                if 400 <= status_code < 500 and status_code != 429:
                    logger.error(f"Census HTTP {status_code} (no retry): {e}")
                    raise UpstreamError(str(e), service="census", status_code=status_code) from e

                logger.warning(f"Census HTTP {status_code} on attempt {attempt + 1}/{self.max_retries}: {e}")
                last_error = UpstreamError(str(e), service="census", status_code=status_code, retryable=True)

            except ValueError as e:
                # Body was not JSON; retrying will not change that
                raise UpstreamError(f"Unparseable Census response: {e}", service="census") from e

            except requests.RequestException as e:
                logger.warning(f"Census request error on attempt {attempt + 1}/{self.max_retries}: {e}")
                last_error = UpstreamError(str(e), service="census", retryable=True)

            if attempt < self.max_retries - 1:
                sleep_time = self.backoff_factor * (2 ** attempt)
                if sleep_time > 0:
                    logger.info(f"Retrying in {sleep_time}s...")
                    time.sleep(sleep_time)

        raise UpstreamError(
            f"All {self.max_retries} Census attempts failed: {last_error}",
            service="census",
            status_code=getattr(last_error, "status_code", None),
        )
