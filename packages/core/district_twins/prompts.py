"""Prompt templates for persona authoring, policy summaries and persona chat.

Prompt Version: 1.0.0

Persona prompts ask for a bare JSON array whose objects use the same
camelCase field names as the Persona export format, so accepted records
can be validated with LLMPersonaRecord directly.
"""

from typing import Dict, Optional, Tuple

from .models import (
    EDUCATION_LABELS,
    EDUCATION_LEVELS,
    RACE_LABELS,
    DemographicProfile,
    Persona,
)
from .narratives import POLITICAL_POLICIES

# Prompt versioning for reproducibility
PROMPT_VERSION = "1.0.0"

PERSONA_FIELDS = (
    "id", "displayName", "age", "raceEthnicity", "educationLevel",
    "occupation", "annualIncome", "narrative", "politicalPolicies",
)


def get_prompt_version() -> str:
    """Return current prompt version for reproducibility tracking."""
    return PROMPT_VERSION


def _bullets(mapping: Optional[Dict[str, int]], suffix: str = "%") -> str:
    if not mapping:
        return "- Not available"
    return "\n".join(f"- {key}: {value}{suffix}" for key, value in mapping.items())


def _rate(value: Optional[int]) -> str:
    return f"{value}%" if value is not None else "Not available"


def get_profile_context(profile: DemographicProfile) -> str:
    """
    Render profile statistics as a prompt block.

    Args:
        profile: Demographic profile for the region

    Returns:
        Multi-line context string
    """
    age_lines = "- Not available"
    if profile.age_groups:
        total = profile.population or sum(profile.age_groups.values()) or 1
        age_lines = "\n".join(
            f"- {bracket}: {count:,} people ({round(count / total * 100)}%)"
            for bracket, count in profile.age_groups.items()
        )

    return "\n".join([
        f"Region: {profile.region_id}",
        f"Population: {profile.population:,}",
        f"Median Household Income: ${profile.median_income:,}",
        f"Median Age: {profile.median_age:g}",
        f"Homeownership Rate: {_rate(profile.homeownership_rate)}",
        f"Poverty Rate: {_rate(profile.poverty_rate)}",
        f"College Education Rate: {_rate(profile.college_rate)}",
        "",
        "RACE / ETHNICITY:",
        _bullets(profile.race_ethnicity),
        "",
        "AGE DISTRIBUTION:",
        age_lines,
        "",
        "EDUCATION:",
        _bullets(profile.education_levels),
        "",
        "OCCUPATION GROUPS:",
        _bullets(profile.occupation_categories),
        "",
        "INCOME DISTRIBUTION:",
        _bullets(profile.income_distribution),
    ])


def build_persona_prompts(profile: DemographicProfile, count: int) -> Tuple[str, str]:
    """
    Build (system_prompt, user_prompt) for authoring ``count`` personas.

    Args:
        profile: Demographic profile to represent
        count: Exact number of personas requested

    Returns:
        Tuple of system and user prompt strings
    """
    races = ", ".join(RACE_LABELS.values())
    levels = ", ".join(f'"{key}" ({EDUCATION_LABELS[key]})' for key in EDUCATION_LEVELS)
    examples = ", ".join(f'"{p}"' for p in POLITICAL_POLICIES[:3])

    system_prompt = f"""You create realistic synthetic constituents ("digital twins") from Census data for region {profile.region_id}.

REQUIREMENTS:
1. Ages, race/ethnicity and education should be representative of the statistics provided
2. Incomes should span the full distribution and cluster around the median of ${profile.median_income:,}
3. Occupations MUST be specific job titles ("Teacher", "Nurse", "Electrician"), never generic groups
4. Each narrative is two or three sentences in the third person and fits the constituent's age, job and income
5. Each constituent supports exactly 3 political policies, one short phrase each (e.g. {examples})
6. Names MUST be exactly "Constituent #1", "Constituent #2", ... in order; never invent real names

JSON STRUCTURE:
Return a JSON array of exactly {count} objects. Each object has these fields:
- id: string ("constituent-1", "constituent-2", ...)
- displayName: string
- age: integer between 18 and 85
- raceEthnicity: one of {races}
- educationLevel: one of {levels}
- occupation: string
- annualIncome: integer dollars
- narrative: string
- politicalPolicies: array of exactly 3 strings

Return ONLY the JSON array. No markdown, no explanations. The response must start with [ and end with ]."""

    user_prompt = f"""Create {count} representative constituents for {profile.region_id} using this Census profile:

{get_profile_context(profile)}

Return exactly {count} objects in a single JSON array."""

    return system_prompt, user_prompt


POLICY_SUMMARY_SYSTEM_PROMPT = """You are a senior policy analyst writing clear summaries of legislative documents for congressional staff.

Use bold headers and bullet points. Focus on practical, district-level implications.

Format your response exactly like this:

## Executive Summary

**Bill Title:** [Clear, descriptive title]

**Purpose:** [One sentence explaining what the bill does]

**Key Impact:** [2-3 bullet points]

## District Analysis

**Representative:** [Name and district]

**Local Impact:** [How this affects the district's residents]

**Affected Groups:** [Bullet points of key demographic groups]

## Constituent Impact

**Directly Impacted Constituents:**
- [Type]: [How they're affected]

**Economic Impact:** [Financial implications for the district]

## Relevance Assessment

**Relevance Score:** [1-5 stars]

**Reasoning:** [Why this matters to the district]"""


def build_policy_summary_prompt(
    content: str,
    district: Optional[str] = None,
    representative: Optional[str] = None,
    profile: Optional[DemographicProfile] = None,
) -> str:
    """Build the user prompt for a policy summary."""
    if representative and district:
        audience = f"{representative} ({district})"
    else:
        audience = district or representative or "your district"

    sections = [f"Analyze this policy document for {audience}:", "", content.strip()]
    if profile is not None:
        sections += ["", "DISTRICT DEMOGRAPHICS:", get_profile_context(profile)]
    sections += [
        "",
        "Provide a professional analysis that highlights district-specific implications "
        "based on the demographic and economic data provided.",
    ]
    return "\n".join(sections)


def build_chat_prompts(
    persona: Persona,
    message: str,
    policy_summary: Optional[str] = None,
) -> Tuple[str, str]:
    """
    Build (system_prompt, user_prompt) for a role-play reply.

    The persona answers in the first person, briefly, staying in character.
    """
    policies = "; ".join(persona.political_policies) or "not stated"
    system_prompt = f"""You are {persona.display_name}, a constituent in {persona.region_id or 'the district'}.

About you:
- Age: {persona.age}
- Race/ethnicity: {persona.race_ethnicity}
- Education: {persona.education_label}
- Occupation: {persona.occupation}
- Annual income: ${persona.annual_income:,}
- Background: {persona.narrative}
- Policies you support: {policies}

Reply in the first person as this constituent, in two to four sentences.
Speak from your own circumstances. Never say you are an AI."""

    if policy_summary:
        user_prompt = f"""The policy under discussion:

{policy_summary.strip()}

Staff question: {message.strip()}"""
    else:
        user_prompt = message.strip()

    return system_prompt, user_prompt
