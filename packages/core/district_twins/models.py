"""
Pydantic models for Census profiles and synthetic constituents.

Defines the schema for normalized demographic profiles, sampled personas
and the stricter record shape that LLM-authored personas must satisfy
before they are accepted.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


MIN_MEDIAN_INCOME = 30000
POLICY_IMPACT_PENDING = "To be determined based on policy analysis"

AGE_BRACKETS = ["18-24", "25-34", "35-44", "45-54", "55-64", "65-74", "75+"]
RACE_CATEGORIES = ["white", "black", "hispanic", "asian", "other"]
EDUCATION_LEVELS = ["lessThanHighSchool", "highSchool", "someCollege", "bachelors", "graduate"]
OCCUPATION_CATEGORIES = ["management", "service", "salesOffice", "construction", "production"]

RACE_LABELS = {
    "white": "White",
    "black": "Black",
    "hispanic": "Hispanic",
    "asian": "Asian",
    "other": "Other",
}

EDUCATION_LABELS = {
    "lessThanHighSchool": "Less than High School",
    "highSchool": "High School Diploma",
    "someCollege": "Some College",
    "bachelors": "Bachelor's Degree",
    "graduate": "Graduate Degree",
}

OCCUPATION_CATEGORY_LABELS = {
    "management": "Management & Professional",
    "service": "Service Occupations",
    "salesOffice": "Sales & Office",
    "construction": "Construction & Maintenance",
    "production": "Production & Transportation",
}


class AgeConstraints:
    """Centralized age constraints for consistency across the pipeline."""
    MIN_PERSONA_AGE = 18           # Youngest sampled constituent
    MAX_PERSONA_AGE = 85           # Upper end of the open "75+" bracket
    OPEN_BRACKET_SPAN = 10         # "75+" is read as [75, 85]
    DEFAULT_AGE = 35               # Used when a bracket label cannot be parsed


class DataProvenance(Enum):
    """Classification of where a profile's numbers came from."""
    CENSUS_API = "Fetched from Census ACS API"
    CACHED = "Served from result cache"
    FALLBACK_RANDOMIZED = "Randomized plausible values (Census unavailable)"
    FALLBACK_FIXED = "Fixed representative district profile (Census unavailable)"


class DemographicProfile(BaseModel):
    """
    Aggregate Census statistics for one region (ZIP code or district).

    Percentage mappings are relative weights; they are not guaranteed to
    sum to exactly 100 because of rounding in the source data.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    region_id: str = Field(..., description="ZIP code or STATE-NUMBER district code")
    population: int = Field(..., ge=0)
    median_income: int = Field(..., description=f"Median household income, floored at {MIN_MEDIAN_INCOME}")
    median_age: float = Field(default=38.0, ge=0)

    age_groups: Optional[Dict[str, int]] = Field(
        default=None,
        description="Age bracket label -> head count (18-24 ... 75+)"
    )
    race_ethnicity: Dict[str, int] = Field(default_factory=dict)
    education_levels: Dict[str, int] = Field(default_factory=dict)
    occupation_categories: Dict[str, int] = Field(default_factory=dict)

    homeownership_rate: Optional[int] = Field(default=None, ge=0)
    poverty_rate: Optional[int] = Field(default=None, ge=0)
    college_rate: Optional[int] = Field(default=None, ge=0)
    income_distribution: Optional[Dict[str, int]] = None

    provenance: DataProvenance = DataProvenance.CENSUS_API

    @field_validator("median_income", mode="after")
    @classmethod
    def _floor_median_income(cls, value: int) -> int:
        return max(MIN_MEDIAN_INCOME, int(value))

    @field_validator(
        "age_groups",
        "race_ethnicity",
        "education_levels",
        "occupation_categories",
        "income_distribution",
        mode="after",
    )
    @classmethod
    def _non_negative_entries(cls, value: Optional[Dict[str, int]]) -> Optional[Dict[str, int]]:
        if value is None:
            return value
        negative = [k for k, v in value.items() if v < 0]
        if negative:
            raise ValueError(f"Negative values not allowed: {', '.join(negative)}")
        return value

    @property
    def is_fallback(self) -> bool:
        return self.provenance in (DataProvenance.FALLBACK_RANDOMIZED, DataProvenance.FALLBACK_FIXED)

    def to_dict(self) -> Dict:
        """Serialize with camelCase keys for the cache and export layers."""
        return self.model_dump(mode="json", by_alias=True)


class Persona(BaseModel):
    """
    One synthetic constituent ("digital twin").

    Identity fields are anonymized placeholders assigned per batch;
    ``Constituent #N`` is never a real name.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        json_schema_extra={
            "example": {
                "id": "constituent-1",
                "displayName": "Constituent #1",
                "regionId": "CA-12",
                "age": 41,
                "raceEthnicity": "Hispanic",
                "educationLevel": "bachelors",
                "occupation": "Accountant",
                "annualIncome": 91250,
                "narrative": "Constituent #1 is a 41-year-old accountant with a bachelor's degree.",
                "policyImpact": POLICY_IMPACT_PENDING,
                "politicalPolicies": [
                    "Universal healthcare access",
                    "Increased funding for public education",
                    "Tax credits for small businesses",
                ],
            }
        },
    )

    id: str = Field(..., description="Sequential label, unique within a batch")
    display_name: str = Field(..., description="Anonymized placeholder name")
    region_id: str = Field(default="", description="District or ZIP the persona was drawn for")

    age: int = Field(..., ge=AgeConstraints.MIN_PERSONA_AGE, le=AgeConstraints.MAX_PERSONA_AGE)
    race_ethnicity: str = Field(..., pattern="^(White|Black|Hispanic|Asian|Other)$")
    education_level: str = Field(..., description="One of the five education level keys")
    occupation: str = Field(..., min_length=1)
    annual_income: int = Field(..., ge=0)

    narrative: str = Field(default="")
    policy_impact: str = Field(default=POLICY_IMPACT_PENDING)
    political_policies: List[str] = Field(default_factory=list)

    @field_validator("education_level")
    @classmethod
    def _known_education_level(cls, value: str) -> str:
        if value not in EDUCATION_LEVELS:
            raise ValueError(f"Unknown education level: {value}")
        return value

    @property
    def education_label(self) -> str:
        return EDUCATION_LABELS[self.education_level]


def normalize_education_level(value: str) -> Optional[str]:
    """
    Map an education key or human label to one of the five level keys.

    Accepts the keys themselves ("bachelors") and common labels
    ("Bachelor's Degree", "Master's Degree", "PhD"). Returns None when
    the value is not recognizable.
    """
    if not value:
        return None
    if value in EDUCATION_LEVELS:
        return value

    text = value.strip().lower()
    if "less than" in text or "no high school" in text or "no diploma" in text:
        return "lessThanHighSchool"
    if "high school" in text or text == "ged":
        return "highSchool"
    if any(word in text for word in ("master", "doctor", "phd", "graduate", "professional degree")):
        return "graduate"
    if "bachelor" in text:
        return "bachelors"
    if "some college" in text or "associate" in text:
        return "someCollege"
    return None


def normalize_race_ethnicity(value: str) -> Optional[str]:
    """Map a race/ethnicity label to one of the five display labels."""
    if not value:
        return None
    text = value.strip().lower()
    if text.startswith("hispanic") or text.startswith("latin"):
        return "Hispanic"
    for key, label in RACE_LABELS.items():
        if text.startswith(key):
            return label
    if text.startswith("african american"):
        return "Black"
    return None


class LLMPersonaRecord(BaseModel):
    """
    Schema an LLM-authored persona must satisfy before it is accepted.

    Identity fields are optional because they are overwritten locally.
    Unknown keys are ignored; wrong types or out-of-range values reject
    the record.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    id: Optional[str] = None
    display_name: Optional[str] = None

    age: int = Field(..., ge=AgeConstraints.MIN_PERSONA_AGE, le=AgeConstraints.MAX_PERSONA_AGE)
    race_ethnicity: str
    education_level: str
    occupation: str = Field(..., min_length=1, max_length=120)
    annual_income: int = Field(..., ge=0, le=10_000_000)
    narrative: str = Field(..., min_length=1)
    political_policies: List[str] = Field(default_factory=list)

    @field_validator("race_ethnicity")
    @classmethod
    def _known_race(cls, value: str) -> str:
        label = normalize_race_ethnicity(value)
        if label is None:
            raise ValueError(f"Unrecognized race/ethnicity: {value}")
        return label

    @field_validator("education_level")
    @classmethod
    def _known_education(cls, value: str) -> str:
        level = normalize_education_level(value)
        if level is None:
            raise ValueError(f"Unrecognized education level: {value}")
        return level


def get_age_bracket(age: int) -> str:
    """
    Map age to its Census age bracket label.

    Args:
        age: Age in years (18+)

    Returns:
        Bracket label such as "25-34" or "75+"
    """
    if age < 25:
        return "18-24"
    elif age < 35:
        return "25-34"
    elif age < 45:
        return "35-44"
    elif age < 55:
        return "45-54"
    elif age < 65:
        return "55-64"
    elif age < 75:
        return "65-74"
    else:
        return "75+"
