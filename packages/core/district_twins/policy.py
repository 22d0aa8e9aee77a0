"""
Policy document summaries.

Summaries are cached per district and document hash. When the LLM is
unavailable a deterministic, keyword-driven Markdown summary is
returned instead so staff always get the same section layout.
"""

import logging
import re
from typing import List, Optional

from .cache import KIND_POLICY_SUMMARY, ResultCache, content_hash
from .llm_client import GenerationConfig, LLMClient
from .models import DemographicProfile
from .prompts import POLICY_SUMMARY_SYSTEM_PROMPT, build_policy_summary_prompt

logger = logging.getLogger(__name__)

MIN_ANALYZABLE_WORDS = 10

POLICY_KEYWORDS = [
    "policy", "bill", "act", "law", "regulation", "funding", "education", "health", "tax",
    "benefit", "student", "financial", "aid", "grant", "program", "veteran", "senior",
    "disability", "environment", "climate", "energy", "transportation", "housing", "immigration",
]
FORMAL_LANGUAGE = re.compile(r"\b(shall|must|required|prohibited|authorized|appropriated)\b", re.IGNORECASE)
DOLLAR_AMOUNT = re.compile(r"\$[\d,]+(?:\.\d{2})?")
PERCENTAGE = re.compile(r"\d+(?:\.\d+)?%")

TITLE_RULES = [
    (("education", "student"), "Education Policy"),
    (("health", "medical"), "Healthcare Policy"),
    (("environment", "climate"), "Environmental Policy"),
    (("housing", "rent"), "Housing Policy"),
    (("funding", "appropriation"), "Federal Funding Policy"),
]

CONSTITUENT_TYPES = [
    "Working Families: May see changes to household budgets and access to public programs",
    "Students and Educators: May experience changes in educational programs and funding",
    "Low-Income Residents: Could be affected by modifications to assistance programs",
    "Small Business Owners: May see changes in contracting, taxes and support programs",
    "Seniors: Could be affected by changes to health and retirement programs",
]


def _representative_line(representative: Optional[str], district: Optional[str]) -> str:
    return f"{representative or 'Not specified'} ({district or 'Not specified'})"


def _short_document_summary(content: str, representative: Optional[str], district: Optional[str]) -> str:
    word_count = len(content.split())
    word_text = "word" if word_count == 1 else "words"
    return f"""## Executive Summary

**Bill Title:** Document Analysis

**Purpose:** The provided text "{content.strip()}" is very brief ({word_count} {word_text}). For a comprehensive policy analysis, please provide a more detailed policy document, bill text, or legislative content.

**Key Impact:**
- Insufficient content for meaningful analysis
- Please provide a longer document for detailed review

## District Analysis

**Representative:** {_representative_line(representative, district)}

**Local Impact:** Unable to determine due to limited content

**Affected Groups:** Unable to identify specific groups due to insufficient content

## Constituent Impact

**Directly Impacted Constituents:**
- Unable to determine due to limited content

**Economic Impact:** Unable to assess due to insufficient information

## Relevance Assessment

**Relevance Score:** 1/5

**Reasoning:** The document contains insufficient content for meaningful policy analysis."""


def structured_fallback_summary(
    content: str,
    district: Optional[str] = None,
    representative: Optional[str] = None,
    profile: Optional[DemographicProfile] = None,
) -> str:
    """
    Deterministic Markdown summary built from keywords and figures in the text.

    Documents shorter than ten words get a dedicated "too short" summary.
    """
    word_count = len(content.split())
    if word_count < MIN_ANALYZABLE_WORDS:
        return _short_document_summary(content, representative, district)

    lowered = content.lower()
    found_keywords = [k for k in POLICY_KEYWORDS if re.search(rf"\b{k}\b", lowered)]
    dollar_amounts = DOLLAR_AMOUNT.findall(content)[:3]
    percentages = PERCENTAGE.findall(content)[:3]
    has_formal_language = bool(FORMAL_LANGUAGE.search(content))

    bill_title = "Policy Document Analysis"
    for words, title in TITLE_RULES:
        if any(w in lowered for w in words):
            bill_title = title
            break

    purpose = f"This document contains approximately {word_count} words"
    if found_keywords:
        purpose += f" and addresses {', '.join(found_keywords[:3])} related matters"
    elif has_formal_language:
        purpose += " and contains legislative or regulatory language"
    elif any(ch.isdigit() for ch in content):
        purpose += " and includes numerical data"
    else:
        purpose += " and may not be a formal policy document"
    if dollar_amounts:
        purpose += f". Funding amounts include {', '.join(dollar_amounts)}"
    if percentages:
        purpose += f". Changes of {', '.join(percentages)}"

    affected_groups: List[str]
    if profile is not None:
        race = profile.race_ethnicity
        bachelors = profile.education_levels.get("bachelors", 0)
        local_impact = (
            f"With a median household income of ${profile.median_income:,}, "
            f"{race.get('hispanic', 0)}% Hispanic and {race.get('black', 0)}% Black residents, "
            f"and {bachelors}% holding a bachelor's degree, changes from this policy would reach "
            f"a broad cross-section of the district's {profile.population:,} residents."
        )
        affected_groups = [
            f"Households near the median income (${profile.median_income:,})",
            f"Residents in poverty ({profile.poverty_rate if profile.poverty_rate is not None else 'unknown'}%)",
            f"College-educated workers ({bachelors}% with a bachelor's degree)",
            f"Older residents (median age {profile.median_age:g})",
        ]
        economic_impact = (
            f"Given the district's median income of ${profile.median_income:,}, changes to public "
            "programs could noticeably affect household budgets and local economic activity."
        )
    else:
        local_impact = (
            "The impact depends on the specific policy focus, but could reach families, workers "
            "and communities that rely on public programs."
        )
        affected_groups = [
            "Working families",
            "Students and educators",
            "Low-income residents",
            "Communities that rely on public programs",
        ]
        economic_impact = (
            "Changes to public programs could affect household budgets and local economic "
            "activity depending on the specific policy focus."
        )

    score = 3
    reason = "Moderate relevance based on general policy content"
    if found_keywords and has_formal_language:
        score, reason = 4, "High relevance due to formal policy language and specific keywords"
    elif not found_keywords and not has_formal_language:
        score, reason = 2, "Low relevance; content may not be formal policy material"
    if profile is not None and profile.education_levels.get("bachelors", 0) > 30:
        score = min(5, score + 1)
        reason += "; high education levels make policy changes more visible in the district"

    groups = "\n".join(f"- {g}" for g in affected_groups)
    constituents = "\n".join(f"- {c}" for c in CONSTITUENT_TYPES)

    return f"""## Executive Summary

**Bill Title:** {bill_title}

**Purpose:** {purpose}.

**Key Impact:**
To be determined based on policy analysis

## District Analysis

**Representative:** {_representative_line(representative, district)}

**Local Impact:** {local_impact}

**Affected Groups:**
{groups}

## Constituent Impact

**Directly Impacted Constituents:**
{constituents}

**Economic Impact:** {economic_impact}

## Relevance Assessment

**Relevance Score:** {score}/5

**Reasoning:** {reason}"""


class PolicySummarizer:
    """Summarizes policy documents with a cache and a structured fallback."""

    def __init__(
        self,
        llm_client: LLMClient,
        cache: Optional[ResultCache] = None,
        max_tokens: int = 3000,
    ):
        self.llm_client = llm_client
        self.cache = cache
        self.max_tokens = max_tokens

    def summarize(
        self,
        content: str,
        district: Optional[str] = None,
        representative: Optional[str] = None,
        profile: Optional[DemographicProfile] = None,
    ) -> str:
        """
        Return a Markdown summary of a policy document.

        Cached summaries are reused when ``district`` is given and the
        document hash matches. Fallback summaries are never cached.
        """
        digest = content_hash(content)

        if self.cache is not None and district:
            cached = self.cache.get(district, KIND_POLICY_SUMMARY, digest)
            if cached and cached.get("summary"):
                logger.info(f"Using cached policy summary for {district}")
                return cached["summary"]

        prompt = build_policy_summary_prompt(content, district, representative, profile)
        config = GenerationConfig(max_tokens=self.max_tokens, temperature=0.3)

        try:
            summary = self.llm_client.generate(prompt, config, system_prompt=POLICY_SUMMARY_SYSTEM_PROMPT)
        except Exception as e:
            logger.warning(f"Policy summary generation failed: {e}")
            summary = ""

        if not summary or not summary.strip():
            logger.info("Using structured fallback policy summary")
            return structured_fallback_summary(content, district, representative, profile)

        summary = summary.strip()
        if self.cache is not None and district:
            self.cache.put(
                district,
                KIND_POLICY_SUMMARY,
                {"summary": summary, "representative": representative},
                digest,
            )
        return summary
