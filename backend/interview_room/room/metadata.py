from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from interview_room.provider.config import CompanyProfile, ConversationConfig
from interview_room.room.backend_client import BackendClient
from interview_room.room.context import CandidateIdentity, InterviewContext
from interview_room.storage.context_adapter import persist_job_details
from interview_room.storage.durable_store import DurableStore

logger = logging.getLogger("room_metadata")

FALLBACK_JOB_TITLE = "Frontend Developer"
FALLBACK_COMPANY_NAME = "the hiring company"
FALLBACK_CANDIDATE_NAME = "Candidate"


async def resolve_job_metadata(
    context: InterviewContext,
    backend: BackendClient,
    store: DurableStore,
) -> InterviewContext:
    """Fill missing job title/company/questions from the backend.

    Lookup failures are logged and leave the fields as they were; the
    fallbacks in ``build_conversation_config`` cover whatever is still empty.
    """
    resolved = context
    if context.needs_job_details():
        try:
            job = await backend.fetch_job(str(context.job_id))
            title = str(job.get("title") or "").strip()
            company = str(job.get("company") or "").strip()
            requirements = job.get("requirements") if isinstance(job.get("requirements"), list) else []
            resolved = replace(
                resolved,
                job_title=resolved.job_title or title,
                company_name=resolved.company_name or company,
                job_requirements=resolved.job_requirements or [str(item) for item in requirements],
                company=replace(resolved.company, name=resolved.company.name or company),
            )
            await persist_job_details(store, title, company)
        except Exception as exc:
            logger.warning("Job details lookup failed | job_id=%s err=%s", context.job_id, exc)

    if context.job_id and not resolved.job_offer_questions:
        try:
            questions = await backend.fetch_job_questions(str(context.job_id))
            if questions:
                resolved = replace(resolved, job_offer_questions=questions)
        except Exception as exc:
            logger.warning("Job questions lookup failed | job_id=%s err=%s", context.job_id, exc)

    return resolved


def build_conversation_config(
    context: InterviewContext,
    candidate: Optional[CandidateIdentity],
) -> ConversationConfig:
    candidate_name = (
        (candidate.full_name if candidate else "")
        or context.candidate_name
        or FALLBACK_CANDIDATE_NAME
    )
    company_name = context.company_name or context.company.name or FALLBACK_COMPANY_NAME
    return ConversationConfig(
        candidate_name=candidate_name,
        job_offer=context.job_title or FALLBACK_JOB_TITLE,
        candidate_summary=context.candidate_summary or "",
        company=replace(context.company, name=company_name),
        external_company=context.external_company or CompanyProfile(),
        job_questions=list(context.job_offer_questions or []),
        overrides=context.overrides,
    )
