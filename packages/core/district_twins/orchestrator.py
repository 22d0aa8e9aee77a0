"""
LLM-backed persona generation with local fallback.

Prefers LLM-authored personas that pass schema validation; on any
failure (client error, timeout, empty or unparseable output, schema
violations, too few records) the batch comes from PersonaSampler.
Callers always receive exactly the requested number of personas.
"""

import json
import logging
import random
from dataclasses import dataclass, field
from typing import Any, List, Optional

from pydantic import ValidationError

from .exceptions import LLMGenerationError
from .llm_client import GenerationConfig, LLMClient
from .models import POLICY_IMPACT_PENDING, DemographicProfile, LLMPersonaRecord, Persona
from .narratives import POLICIES_PER_PERSONA, political_policies_for
from .prompts import build_chat_prompts, build_persona_prompts
from .sampler import PersonaSampler

logger = logging.getLogger(__name__)

SOURCE_LLM = "llm"
SOURCE_SAMPLER = "sampler"
DEFAULT_PERSONA_MAX_TOKENS = 3000
CHAT_MAX_TOKENS = 200


@dataclass
class GenerationResult:
    """A persona batch and where it came from."""
    personas: List[Persona]
    source: str
    error: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @property
    def used_fallback(self) -> bool:
        return self.source == SOURCE_SAMPLER


def extract_json_array(text: str) -> List[Any]:
    """
    Parse the JSON array embedded in an LLM reply.

    Slices from the first "[" to the last "]" so prose or code fences
    around the array are ignored.

    Raises:
        ValueError: If no array is present or it does not parse
    """
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end <= start:
        raise ValueError("No JSON array found in response")

    parsed = json.loads(text[start:end + 1])
    if not isinstance(parsed, list):
        raise ValueError("Response JSON is not an array")
    return parsed


def _policies(raw: List[str], index: int) -> List[str]:
    policies = [p.strip() for p in raw if isinstance(p, str) and p.strip()][:POLICIES_PER_PERSONA]
    for default in political_policies_for(index):
        if len(policies) >= POLICIES_PER_PERSONA:
            break
        if default not in policies:
            policies.append(default)
    return policies


def personas_from_llm_response(text: str, count: int, region_id: str) -> List[Persona]:
    """
    Validate an LLM reply and convert it into exactly ``count`` personas.

    Extra records are dropped. Identity fields and the policy impact are
    always assigned locally.

    Raises:
        ValueError: If parsing fails, fewer than ``count`` records came
            back, or any record violates LLMPersonaRecord
            (pydantic.ValidationError is a ValueError)
    """
    records = extract_json_array(text)
    if len(records) < count:
        raise ValueError(f"LLM returned {len(records)} personas, expected {count}")
    if len(records) > count:
        logger.info(f"LLM returned {len(records)} personas; keeping the first {count}")

    personas = []
    for i, raw in enumerate(records[:count]):
        if not isinstance(raw, dict):
            raise ValueError(f"Record {i} is not an object")
        record = LLMPersonaRecord.model_validate(raw)
        personas.append(Persona(
            id=f"constituent-{i + 1}",
            display_name=f"Constituent #{i + 1}",
            region_id=region_id,
            age=record.age,
            race_ethnicity=record.race_ethnicity,
            education_level=record.education_level,
            occupation=record.occupation.strip(),
            annual_income=record.annual_income,
            narrative=record.narrative.strip(),
            policy_impact=POLICY_IMPACT_PENDING,
            political_policies=_policies(record.political_policies, i),
        ))
    return personas


FALLBACK_CHAT_REPLIES = [
    "Hi there! I'm {name}. Thanks for reaching out. I'm a {age}-year-old {occupation} from around here, "
    "and I'd be happy to chat about what's on your mind.",
    "Hey, {name} here. I work as a {occupation} and I'm always interested in hearing about issues "
    "that affect our community. What would you like to discuss?",
    "Hello! I'm {name}. A little about me: {narrative} I think it's important we talk about things "
    "that matter to people like us. What's on your mind?",
    "Hi, {name} speaking. I'm a {occupation} living in this area, and I care about how policies "
    "affect real people. What would you like to talk about?",
]


class PersonaOrchestrator:
    """
    Chooses between LLM-authored and locally sampled personas.

    Also handles in-character chat replies for a persona.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        sampler: Optional[PersonaSampler] = None,
        max_tokens: int = DEFAULT_PERSONA_MAX_TOKENS,
        seed: Optional[int] = None,
    ):
        self.llm_client = llm_client
        self.sampler = sampler or PersonaSampler(seed=seed)
        self.max_tokens = max_tokens
        self._rng = random.Random(seed)

    def generate_personas(self, profile: DemographicProfile, count: int) -> GenerationResult:
        """
        Generate ``count`` personas for a profile.

        Raises:
            ValueError: If count < 1 (nothing else propagates)
        """
        if count < 1:
            raise ValueError(f"count must be at least 1, got {count}")

        system_prompt, user_prompt = build_persona_prompts(profile, count)
        config = GenerationConfig(max_tokens=self.max_tokens, temperature=0.8)
        provider = getattr(self.llm_client, "provider", type(self.llm_client).__name__)

        try:
            text = self.llm_client.generate(user_prompt, config, system_prompt=system_prompt)
            if not text or not text.strip():
                raise LLMGenerationError("Empty response", provider=provider)
            personas = personas_from_llm_response(text, count, profile.region_id)
        except LLMGenerationError as e:
            error = f"LLM generation failed: {e}"
        except ValidationError as e:
            error = f"LLM personas failed validation: {e.error_count()} error(s)"
        except ValueError as e:
            error = f"LLM response unusable: {e}"
        except Exception as e:
            # Any other client failure (timeouts, transport errors) still degrades to sampling
            error = f"Unexpected LLM client error: {type(e).__name__}: {e}"
        else:
            logger.info(f"Generated {len(personas)} personas for {profile.region_id} via {provider}")
            return GenerationResult(personas=personas, source=SOURCE_LLM, metadata={"provider": provider})

        logger.warning(f"{error}; falling back to local sampler for {profile.region_id}")
        personas = self.sampler.sample_personas(profile, count)
        return GenerationResult(
            personas=personas,
            source=SOURCE_SAMPLER,
            error=error,
            metadata={"provider": provider, "profile_provenance": profile.provenance.name},
        )

    def respond_as_persona(
        self,
        persona: Persona,
        message: str,
        policy_summary: Optional[str] = None,
    ) -> str:
        """In-character reply from a persona; canned reply on any LLM failure."""
        system_prompt, user_prompt = build_chat_prompts(persona, message, policy_summary)
        config = GenerationConfig(max_tokens=CHAT_MAX_TOKENS, temperature=0.8)

        try:
            reply = self.llm_client.generate(user_prompt, config, system_prompt=system_prompt)
        except Exception as e:
            logger.warning(f"Chat generation failed for {persona.id}: {e}")
            reply = ""

        if reply and reply.strip():
            return reply.strip()
        return self.fallback_reply(persona)

    def fallback_reply(self, persona: Persona) -> str:
        template = self._rng.choice(FALLBACK_CHAT_REPLIES)
        return template.format(
            name=persona.display_name,
            age=persona.age,
            occupation=persona.occupation.lower(),
            narrative=persona.narrative,
        )
