from dataclasses import dataclass, field
from typing import Optional

from interview_room.provider.config import CompanyProfile, VoiceOverrides


@dataclass
class CandidateIdentity:
    """
    An authenticated candidate account.
    Guests taking an invitation interview never have one.
    """
    id: str
    full_name: str = ""
    email: str = ""
    role: str = "candidate"


@dataclass
class InterviewContext:
    """
    Cross-page context the room reads at mount.
    Written by the application/invitation flow before the candidate arrives.
    """
    job_id: Optional[str] = None
    job_title: str = ""
    company_name: str = ""
    job_requirements: list[str] = field(default_factory=list)
    candidate_summary: str = ""
    job_offer_questions: list[str] = field(default_factory=list)
    guest_interview_id: Optional[str] = None
    application_id: Optional[str] = None

    candidate_name: str = ""
    company: CompanyProfile = field(default_factory=CompanyProfile)
    external_company: CompanyProfile = field(default_factory=CompanyProfile)
    overrides: VoiceOverrides = field(default_factory=VoiceOverrides)

    def needs_job_details(self) -> bool:
        return bool(self.job_id) and (not self.job_title or not self.company_name)
