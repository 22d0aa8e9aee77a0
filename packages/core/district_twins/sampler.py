"""
Local persona sampler.

Draws synthetic constituents from a DemographicProfile using
conditional sampling along the chain:
    Age -> Education -> Income -> Occupation
    Race/ethnicity (independent)

Works offline and is the fallback path for LLM generation.
"""

import logging
import random
from typing import Dict, List, Optional, Tuple

from tqdm import tqdm

from .models import (
    POLICY_IMPACT_PENDING,
    RACE_CATEGORIES,
    RACE_LABELS,
    AgeConstraints,
    DemographicProfile,
    Persona,
)
from .narratives import (
    OCCUPATIONS,
    occupation_category,
    political_policies_for,
    render_narrative,
)

logger = logging.getLogger(__name__)


# Used when a profile has no (or all-zero) age groups
FALLBACK_AGE_WEIGHTS: Dict[str, int] = {
    "18-24": 12,
    "25-34": 18,
    "35-44": 16,
    "45-54": 15,
    "55-64": 14,
    "65-74": 12,
    "75+": 13,
}

EDUCATION_MULTIPLIERS: Dict[str, float] = {
    "graduate": 1.5,
    "bachelors": 1.2,
    "someCollege": 0.9,
    "highSchool": 0.7,
    "lessThanHighSchool": 0.5,
}

INCOME_JITTER = (0.75, 1.25)


def age_multiplier(age: int) -> float:
    """Earnings curve over the working life."""
    if age < 25:
        return 0.7
    elif age < 35:
        return 0.9
    elif age < 45:
        return 1.1
    elif age < 55:
        return 1.2
    elif age < 65:
        return 1.1
    else:
        return 0.8


def income_band(median_income: int, education_level: str, age: int) -> Tuple[float, float]:
    """
    Deterministic [low, high] band a sampled income falls in (before rounding).

    Args:
        median_income: Profile median household income
        education_level: One of the five education keys
        age: Persona age

    Returns:
        (low, high) tuple
    """
    base = median_income * EDUCATION_MULTIPLIERS.get(education_level, 1.0) * age_multiplier(age)
    return base * INCOME_JITTER[0], base * INCOME_JITTER[1]


def parse_age_bracket(label: str) -> Optional[Tuple[int, int]]:
    """Parse "25-34" or "75+" into inclusive bounds; None when unparseable."""
    text = label.strip()
    try:
        if text.endswith("+"):
            low = int(text[:-1])
            return low, low + AgeConstraints.OPEN_BRACKET_SPAN
        low, high = (int(part) for part in text.split("-", 1))
    except ValueError:
        return None
    if low > high:
        return None
    return low, high


class PersonaSampler:
    """
    Samples constituents from aggregate Census statistics.

    Each persona is drawn independently; a fixed seed reproduces a batch.
    """

    def __init__(self, seed: Optional[int] = None):
        """
        Initialize the sampler.

        Args:
            seed: Random seed for reproducibility
        """
        self.seed = seed
        self.rng = random.Random(seed)

    def _sample_from_dict(self, distribution: Dict[str, float]) -> str:
        keys = list(distribution.keys())
        weights = list(distribution.values())
        return self.rng.choices(keys, weights=weights, k=1)[0]

    def sample_age(self, age_groups: Optional[Dict[str, int]]) -> int:
        """Weighted bracket choice, then a uniform age within the bracket."""
        if age_groups and sum(age_groups.values()) > 0:
            bracket = self._sample_from_dict(age_groups)
        else:
            bracket = self._sample_from_dict(FALLBACK_AGE_WEIGHTS)

        bounds = parse_age_bracket(bracket)
        if bounds is None:
            age = AgeConstraints.DEFAULT_AGE
        else:
            age = self.rng.randint(bounds[0], bounds[1])

        return max(AgeConstraints.MIN_PERSONA_AGE, min(AgeConstraints.MAX_PERSONA_AGE, age))

    def sample_race_ethnicity(self, race_ethnicity: Dict[str, int]) -> str:
        weights = {key: max(0, race_ethnicity.get(key, 0)) for key in RACE_CATEGORIES}
        if sum(weights.values()) <= 0:
            return RACE_LABELS["other"]
        return RACE_LABELS[self._sample_from_dict(weights)]

    def sample_education(self, age: int) -> str:
        """
        Education level conditioned on age.

        Uses fixed tables rather than the profile's education mapping,
        which is itself partly estimated.
        """
        if age < 20:
            return self.rng.choices(["highSchool", "someCollege"], weights=[80, 20])[0]
        elif age < 25:
            return self.rng.choices(
                ["highSchool", "someCollege", "bachelors"],
                weights=[20, 50, 30]
            )[0]
        elif age < 35:
            return self.rng.choices(
                ["highSchool", "someCollege", "bachelors", "graduate"],
                weights=[15, 25, 40, 20]
            )[0]
        else:
            return self.rng.choices(
                ["lessThanHighSchool", "highSchool", "someCollege", "bachelors", "graduate"],
                weights=[10, 30, 25, 25, 10]
            )[0]

    def sample_income(self, median_income: int, education_level: str, age: int) -> int:
        base = median_income * EDUCATION_MULTIPLIERS.get(education_level, 1.0) * age_multiplier(age)
        return round(base * self.rng.uniform(*INCOME_JITTER))

    def sample_occupation(self, education_level: str, annual_income: int) -> str:
        category = occupation_category(education_level, annual_income)
        return self.rng.choice(OCCUPATIONS[category])

    def sample_persona(self, profile: DemographicProfile, index: int) -> Persona:
        """Draw the persona at position ``index`` (0-based) of a batch."""
        name = f"Constituent #{index + 1}"

        age = self.sample_age(profile.age_groups)
        race = self.sample_race_ethnicity(profile.race_ethnicity)
        education = self.sample_education(age)
        income = self.sample_income(profile.median_income, education, age)
        occupation = self.sample_occupation(education, income)

        return Persona(
            id=f"constituent-{index + 1}",
            display_name=name,
            region_id=profile.region_id,
            age=age,
            race_ethnicity=race,
            education_level=education,
            occupation=occupation,
            annual_income=income,
            narrative=render_narrative(index, name, age, race, education, occupation, income, self.rng),
            policy_impact=POLICY_IMPACT_PENDING,
            political_policies=political_policies_for(index),
        )

    def sample_personas(
        self,
        profile: DemographicProfile,
        count: int,
        show_progress: bool = False,
    ) -> List[Persona]:
        """
        Sample a batch of personas.

        Args:
            profile: Demographic profile to draw from
            count: Number of personas (must be >= 1)
            show_progress: Whether to show a progress bar

        Returns:
            Exactly ``count`` personas

        Raises:
            ValueError: If count < 1
        """
        if count < 1:
            raise ValueError(f"count must be at least 1, got {count}")

        iterator = range(count)
        if show_progress:
            iterator = tqdm(iterator, desc="Sampling personas", total=count)

        personas = [self.sample_persona(profile, i) for i in iterator]
        logger.debug(f"Sampled {len(personas)} personas for {profile.region_id}")
        return personas
