from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from interview_room.room.context import CandidateIdentity, InterviewContext

REVIEW_DESTINATION = "/review"
GUEST_THANK_YOU_DESTINATION = "/review/thank-you"
THANK_YOU_DESTINATION = "/thank-you"


class TerminalBranch(str, Enum):
    GUEST = "guest"
    REVIEW = "review"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class TerminalDecision:
    branch: TerminalBranch
    destination: str
    guest_interview_id: Optional[str] = None
    job_id: Optional[str] = None


def decide_terminal_action(context: InterviewContext, candidate: Optional[CandidateIdentity]) -> TerminalDecision:
    """Pick where the candidate goes once the session is over.

    Guests complete their invitation record first; signed-in candidates go to
    the review page, which builds the report itself; anyone else still gets a
    thank-you page instead of being left in the room.
    """
    if context.guest_interview_id and candidate is None:
        return TerminalDecision(
            branch=TerminalBranch.GUEST,
            destination=GUEST_THANK_YOU_DESTINATION,
            guest_interview_id=context.guest_interview_id,
        )
    if candidate is not None and context.job_id:
        return TerminalDecision(
            branch=TerminalBranch.REVIEW,
            destination=REVIEW_DESTINATION,
            job_id=context.job_id,
        )
    return TerminalDecision(branch=TerminalBranch.FALLBACK, destination=THANK_YOU_DESTINATION)
