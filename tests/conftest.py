"""Test configuration for local imports and shared fixtures."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest
import requests

PROJECT_ROOT = Path(__file__).resolve().parents[1]
CORE_PATH = PROJECT_ROOT / "packages" / "core"

if str(CORE_PATH) not in sys.path:
    sys.path.insert(0, str(CORE_PATH))

from district_twins.models import DataProvenance, DemographicProfile  # noqa: E402


# ACS row for a CA-12-like district, in request order
CA12_ROW = [
    "700000",   # total population
    "400000",   # white
    "80000",    # black
    "50000",    # asian
    "150000",   # hispanic
    "95000",    # median income
    "120000",   # bachelors
    "50000",    # masters
    "10000",    # professional
    "10000",    # doctorate
    "150000",   # owner occupied
    "130000",   # renter occupied
    "70000",    # below poverty
    "400000",   # employed total
    "160000",   # management
    "60000",    # service
    "80000",    # sales/office
    "40000",    # construction
    "60000",    # production
    "37.5",     # median age
    "06",       # state
    "12",       # congressional district
]

CENSUS_HEADER = [f"COL{i}" for i in range(len(CA12_ROW))]


def build_response(status_code: int = 200, body=None, raw: bytes = None) -> requests.Response:
    """Real requests.Response carrying a JSON (or raw) body."""
    response = requests.Response()
    response.status_code = status_code
    response.url = "https://api.census.gov/data/2021/acs/acs5"
    if raw is not None:
        response._content = raw
    else:
        response._content = json.dumps(body if body is not None else []).encode("utf-8")
    return response


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def census_body():
    return [CENSUS_HEADER, list(CA12_ROW)]


@pytest.fixture
def census_session(census_body):
    """Session whose every GET returns the CA-12 row."""
    session = Mock()
    session.get.return_value = build_response(200, census_body)
    return session


@pytest.fixture
def live_profile() -> DemographicProfile:
    return DemographicProfile(
        region_id="CA-12",
        population=700000,
        median_income=95000,
        median_age=37.0,
        age_groups={
            "18-24": 84000,
            "25-34": 126000,
            "35-44": 112000,
            "45-54": 105000,
            "55-64": 98000,
            "65-74": 84000,
            "75+": 91000,
        },
        race_ethnicity={"white": 57, "black": 11, "hispanic": 21, "asian": 7, "other": 2},
        education_levels={
            "lessThanHighSchool": 10,
            "highSchool": 28,
            "someCollege": 22,
            "bachelors": 16,
            "graduate": 11,
        },
        occupation_categories={
            "management": 40,
            "service": 15,
            "salesOffice": 20,
            "construction": 10,
            "production": 15,
        },
        homeownership_rate=54,
        poverty_rate=10,
        college_rate=27,
        provenance=DataProvenance.CENSUS_API,
    )


def llm_record(**overrides) -> dict:
    record = {
        "id": "ignored",
        "displayName": "Maria Lopez",
        "age": 42,
        "raceEthnicity": "Hispanic",
        "educationLevel": "Bachelor's Degree",
        "occupation": "Accountant",
        "annualIncome": 88000,
        "narrative": "Works downtown and commutes by BART.",
        "politicalPolicies": ["Affordable housing initiatives"],
    }
    record.update(overrides)
    return record


@pytest.fixture
def make_llm_record():
    return llm_record
