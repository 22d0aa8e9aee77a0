"""
Fixed text catalogs used by the sampler: job titles, biography templates
and the political policy list.
"""

import random
from typing import Dict, List, Tuple

from .models import RACE_LABELS


OCCUPATIONS: Dict[str, List[str]] = {
    "Healthcare": ["Doctor", "Nurse", "Medical Assistant", "Pharmacist", "Physical Therapist"],
    "Education": ["Teacher", "Professor", "School Administrator", "Librarian", "Tutor"],
    "Technology": ["Software Engineer", "Data Analyst", "IT Manager", "Web Developer", "Systems Administrator"],
    "Business": ["Manager", "Accountant", "Sales Representative", "Marketing Specialist", "HR Manager"],
    "Service": ["Restaurant Manager", "Retail Supervisor", "Customer Service Rep", "Hotel Manager", "Chef"],
    "Construction": ["Construction Manager", "Electrician", "Plumber", "Carpenter", "Architect"],
    "Government": ["Government Employee", "Police Officer", "Firefighter", "Postal Worker", "Administrator"],
    "Transportation": ["Truck Driver", "Bus Driver", "Delivery Driver", "Pilot", "Train Conductor"],
    "Manufacturing": ["Factory Worker", "Machine Operator", "Quality Control", "Production Manager", "Technician"],
    "Retail": ["Sales Associate", "Store Manager", "Cashier", "Customer Service", "Inventory Specialist"],
}

# education level -> (income threshold, category above it, category at or below it)
OCCUPATION_BY_EDUCATION: Dict[str, Tuple[int, str, str]] = {
    "graduate": (80000, "Technology", "Education"),
    "bachelors": (60000, "Technology", "Business"),
    "someCollege": (50000, "Healthcare", "Service"),
    "highSchool": (40000, "Construction", "Service"),
    "lessThanHighSchool": (40000, "Construction", "Service"),
}

# Phrase completing "... with {phrase}" / "... who completed {phrase}"
EDUCATION_PHRASES = {
    "lessThanHighSchool": "some high school coursework",
    "highSchool": "a high school diploma",
    "someCollege": "some college education",
    "bachelors": "a bachelor's degree",
    "graduate": "a graduate degree",
}

NARRATIVE_TEMPLATES = [
    "{name} is a {age}-year-old {race} {occupation} with {education}. "
    "They've lived in the district for {years_in_district} years and earn {income} annually.",

    "A {race} resident, {name} works as a {occupation} and has {education}. "
    "They're concerned about local economic development and community issues.",

    "{name}, {age}, is a {occupation} who completed {education}. "
    "They're focused on affordable housing and transportation in the district.",

    "With {years_experience} years of experience as a {occupation}, {name} has seen the district "
    "change significantly. They care about maintaining community character while supporting growth.",

    "{name} is a {age}-year-old {occupation} with {education}. "
    "They're particularly concerned about environmental issues and sustainable development.",
]

POLITICAL_POLICIES = [
    "Universal healthcare access",
    "Increased funding for public education",
    "Tax credits for small businesses",
    "Affordable housing initiatives",
    "Renewable energy incentives",
    "Student loan forgiveness",
    "Minimum wage increase",
    "Climate change action",
    "Veterans healthcare funding",
    "Social Security protection",
    "Broadband infrastructure",
    "Road and bridge repair",
    "Mental health services funding",
    "Vocational training programs",
    "Rent control measures",
    "Public transportation funding",
    "DACA protection",
    "Medicare expansion",
    "Tech education funding",
    "Water system upgrades",
]

POLICIES_PER_PERSONA = 3


def occupation_category(education_level: str, annual_income: int) -> str:
    """Pick the occupation category for an education tier and income."""
    threshold, high, low = OCCUPATION_BY_EDUCATION.get(
        education_level, OCCUPATION_BY_EDUCATION["highSchool"]
    )
    return high if annual_income > threshold else low


def political_policies_for(index: int) -> List[str]:
    """Three consecutive catalog entries, offset by persona index."""
    start = (index * POLICIES_PER_PERSONA) % len(POLITICAL_POLICIES)
    return [
        POLITICAL_POLICIES[(start + k) % len(POLITICAL_POLICIES)]
        for k in range(POLICIES_PER_PERSONA)
    ]


def render_narrative(
    index: int,
    name: str,
    age: int,
    race_ethnicity: str,
    education_level: str,
    occupation: str,
    annual_income: int,
    rng: random.Random,
) -> str:
    """
    Fill the biography template chosen by persona index.

    Years in the district and years of experience are drawn from ``rng``
    so a seeded sampler reproduces the same text.
    """
    template = NARRATIVE_TEMPLATES[index % len(NARRATIVE_TEMPLATES)]
    race = race_ethnicity if race_ethnicity in RACE_LABELS.values() else "Other"
    return template.format(
        name=name,
        age=age,
        race=race.lower(),
        occupation=occupation.lower(),
        education=EDUCATION_PHRASES.get(education_level, "a high school diploma"),
        income=f"${annual_income:,}",
        years_in_district=rng.randint(5, 24),
        years_experience=rng.randint(10, 29),
    )
