"""Tests for the local persona sampler."""

from collections import Counter

import pytest

from district_twins.models import (
    EDUCATION_LEVELS,
    POLICY_IMPACT_PENDING,
    RACE_LABELS,
    AgeConstraints,
    DemographicProfile,
)
from district_twins.narratives import OCCUPATIONS, POLITICAL_POLICIES, occupation_category
from district_twins.sampler import (
    FALLBACK_AGE_WEIGHTS,
    PersonaSampler,
    age_multiplier,
    income_band,
    parse_age_bracket,
)
from district_twins.statistical_tests import age_bracket_frequencies


class TestHelpers:
    """Tests for sampler helper functions."""

    @pytest.mark.parametrize("label,bounds", [
        ("18-24", (18, 24)),
        ("65-74", (65, 74)),
        ("75+", (75, 85)),
        ("adults", None),
        ("34-25", None),
    ])
    def test_parse_age_bracket(self, label, bounds):
        assert parse_age_bracket(label) == bounds

    def test_age_multiplier_curve(self):
        assert age_multiplier(20) == 0.7
        assert age_multiplier(50) == 1.2
        assert age_multiplier(70) == 0.8

    def test_income_band(self):
        low, high = income_band(50000, "graduate", 40)
        assert low == pytest.approx(50000 * 1.5 * 1.1 * 0.75)
        assert high == pytest.approx(50000 * 1.5 * 1.1 * 1.25)

    def test_occupation_category_by_income(self):
        assert occupation_category("graduate", 90000) == "Technology"
        assert occupation_category("graduate", 80000) == "Education"
        assert occupation_category("highSchool", 20000) == "Service"


class TestPersonaSampler:
    """Tests for PersonaSampler."""

    def test_exact_count(self, live_profile):
        personas = PersonaSampler(seed=1).sample_personas(live_profile, 25)
        assert len(personas) == 25

    def test_invalid_count(self, live_profile):
        with pytest.raises(ValueError):
            PersonaSampler(seed=1).sample_personas(live_profile, 0)

    def test_identity_fields(self, live_profile):
        personas = PersonaSampler(seed=1).sample_personas(live_profile, 3)
        assert [p.id for p in personas] == ["constituent-1", "constituent-2", "constituent-3"]
        assert personas[2].display_name == "Constituent #3"
        assert all(p.region_id == "CA-12" for p in personas)
        assert all(p.policy_impact == POLICY_IMPACT_PENDING for p in personas)

    def test_field_ranges(self, live_profile):
        titles = {title for titles in OCCUPATIONS.values() for title in titles}
        for p in PersonaSampler(seed=2).sample_personas(live_profile, 300):
            assert AgeConstraints.MIN_PERSONA_AGE <= p.age <= AgeConstraints.MAX_PERSONA_AGE
            assert p.race_ethnicity in RACE_LABELS.values()
            assert p.education_level in EDUCATION_LEVELS
            assert p.occupation in titles
            assert len(p.political_policies) == 3
            assert p.narrative

    def test_income_within_band(self, live_profile):
        for p in PersonaSampler(seed=3).sample_personas(live_profile, 300):
            low, high = income_band(live_profile.median_income, p.education_level, p.age)
            assert low - 0.5 <= p.annual_income <= high + 0.5

    def test_occupation_follows_education_and_income(self, live_profile):
        for p in PersonaSampler(seed=4).sample_personas(live_profile, 100):
            category = occupation_category(p.education_level, p.annual_income)
            assert p.occupation in OCCUPATIONS[category]

    def test_seed_reproducible(self, live_profile):
        a = PersonaSampler(seed=42).sample_personas(live_profile, 20)
        b = PersonaSampler(seed=42).sample_personas(live_profile, 20)
        assert [p.model_dump() for p in a] == [p.model_dump() for p in b]

    def test_different_seeds_differ(self, live_profile):
        a = PersonaSampler(seed=1).sample_personas(live_profile, 20)
        b = PersonaSampler(seed=2).sample_personas(live_profile, 20)
        assert [p.model_dump() for p in a] != [p.model_dump() for p in b]

    def test_policies_rotate_by_index(self, live_profile):
        personas = PersonaSampler(seed=1).sample_personas(live_profile, 8)
        assert personas[0].political_policies == POLITICAL_POLICIES[0:3]
        assert personas[1].political_policies == POLITICAL_POLICIES[3:6]
        # 7 * 3 = 21 wraps to 1
        assert personas[7].political_policies == POLITICAL_POLICIES[1:4]

    def test_zero_race_weights_yield_other(self):
        profile = DemographicProfile(
            region_id="94110",
            population=1000,
            median_income=60000,
            race_ethnicity={"white": 0, "black": 0, "hispanic": 0, "asian": 0, "other": 0},
        )
        personas = PersonaSampler(seed=1).sample_personas(profile, 20)
        assert {p.race_ethnicity for p in personas} == {"Other"}

    def test_missing_age_groups_use_fallback_weights(self):
        profile = DemographicProfile(region_id="94110", population=1000, median_income=60000)
        personas = PersonaSampler(seed=9).sample_personas(profile, 200)
        assert all(18 <= p.age <= 85 for p in personas)

    def test_unparseable_bracket_gives_default_age(self):
        sampler = PersonaSampler(seed=1)
        assert sampler.sample_age({"adults": 10}) == AgeConstraints.DEFAULT_AGE

    def test_reversed_bracket_gives_default_age(self):
        profile = DemographicProfile(
            region_id="94110", population=1000, median_income=60000, age_groups={"34-25": 10},
        )
        personas = PersonaSampler(seed=1).sample_personas(profile, 3)
        assert [p.age for p in personas] == [AgeConstraints.DEFAULT_AGE] * 3

    def test_young_adults_never_graduate(self):
        sampler = PersonaSampler(seed=5)
        levels = {sampler.sample_education(19) for _ in range(200)}
        assert levels <= {"highSchool", "someCollege"}

    def test_race_follows_profile(self, live_profile):
        personas = PersonaSampler(seed=6).sample_personas(live_profile, 2000)
        counts = Counter(p.race_ethnicity for p in personas)
        assert abs(counts["White"] / 2000 * 100 - 57) < 5

    def test_progress_bar(self, live_profile):
        personas = PersonaSampler(seed=1).sample_personas(live_profile, 5, show_progress=True)
        assert len(personas) == 5


@pytest.mark.slow
def test_age_bracket_frequencies_match_profile(live_profile):
    """Over 10,000 draws every bracket lands within 3 points of its share."""
    personas = PersonaSampler(seed=2024).sample_personas(live_profile, 10000)
    frequencies = age_bracket_frequencies(personas)
    total = sum(live_profile.age_groups.values())

    for bracket, count in live_profile.age_groups.items():
        expected = count / total * 100
        assert abs(frequencies[bracket] - expected) <= 3.0, bracket


@pytest.mark.slow
def test_absent_age_groups_follow_fallback_weights():
    """Without age groups, bracket frequencies track the fallback weights."""
    profile = DemographicProfile(region_id="94110", population=50000, median_income=60000)
    personas = PersonaSampler(seed=7).sample_personas(profile, 10000)
    frequencies = age_bracket_frequencies(personas)
    total = sum(FALLBACK_AGE_WEIGHTS.values())

    for bracket, weight in FALLBACK_AGE_WEIGHTS.items():
        assert abs(frequencies[bracket] - weight / total * 100) <= 3.0, bracket
