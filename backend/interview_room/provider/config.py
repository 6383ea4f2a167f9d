from __future__ import annotations

import json
from dataclasses import dataclass, field


@dataclass(frozen=True)
class VoiceOverrides:
    """Optional per-invitation voice and generation tuning.

    ``None`` means "use the agent default" and is left out of the override
    block; every other field of the initiation payload is always sent.
    """

    language: str | None = None
    temperature: float | None = None
    stability: float | None = None
    speed: float | None = None
    similarity_boost: float | None = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (self.language, self.temperature, self.stability, self.speed, self.similarity_boost)
        )


@dataclass(frozen=True)
class CompanyProfile:
    name: str = ""
    email: str = ""
    size: str = ""
    sector: str = ""
    about: str = ""
    website: str = ""


@dataclass(frozen=True)
class ConversationConfig:
    """Everything the voice agent receives when a session opens.

    All fields are required; the room fills empty defaults before building
    one so the provider always sees every dynamic variable key.
    """

    candidate_name: str
    job_offer: str
    candidate_summary: str
    company: CompanyProfile
    external_company: CompanyProfile
    job_questions: list[str]
    overrides: VoiceOverrides = field(default_factory=VoiceOverrides)

    def dynamic_variables(self) -> dict[str, str]:
        return {
            "candidate_name": self.candidate_name,
            "job_offer": self.job_offer,
            "candidate_summary": self.candidate_summary,
            "company_name": self.company.name,
            "company_size": self.company.size,
            "company_sector": self.company.sector,
            "company_about": self.company.about,
            "company_website": self.company.website,
            "external_company_name": self.external_company.name,
            "external_company_email": self.external_company.email,
            "external_company_size": self.external_company.size,
            "external_company_sector": self.external_company.sector,
            "external_company_about": self.external_company.about,
            "external_company_website": self.external_company.website,
            # dynamic variables must be scalars, so the list travels as JSON text
            "job_questions": json.dumps(list(self.job_questions), ensure_ascii=False),
            "language": self.overrides.language or "",
        }

    def initiation_payload(self) -> dict:
        payload: dict = {
            "type": "conversation_initiation_client_data",
            "dynamic_variables": self.dynamic_variables(),
        }
        override: dict = {}
        if self.overrides.language:
            override["agent"] = {"language": self.overrides.language}
        tts = {
            key: value
            for key, value in (
                ("stability", self.overrides.stability),
                ("speed", self.overrides.speed),
                ("similarity_boost", self.overrides.similarity_boost),
            )
            if value is not None
        }
        if tts:
            override["tts"] = tts
        if override:
            payload["conversation_config_override"] = override
        if self.overrides.temperature is not None:
            payload["custom_llm_extra_body"] = {"temperature": self.overrides.temperature}
        return payload
