"""Edge adapter between the durable key/value store and the typed room context.

Nothing else in the room reads storage keys directly; controllers work with
``InterviewContext`` and ``CandidateIdentity`` only.
"""

from __future__ import annotations

import logging

from interview_room.provider.config import CompanyProfile, VoiceOverrides
from interview_room.room.context import CandidateIdentity, InterviewContext
from interview_room.storage import keys
from interview_room.storage.durable_store import DurableStore, get_json, set_json

logger = logging.getLogger("context_adapter")


def _string_list(raw) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [str(item) for item in raw if item is not None and str(item).strip()]


def _optional_float(raw: str | None) -> float | None:
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric voice override | value=%s", raw)
        return None


async def _text(store: DurableStore, key: str) -> str:
    return str(await store.get(key) or "").strip()


async def _optional_text(store: DurableStore, key: str) -> str | None:
    value = await _text(store, key)
    return value or None


async def load_interview_context(store: DurableStore) -> InterviewContext:
    return InterviewContext(
        job_id=await _optional_text(store, keys.JOB_ID),
        job_title=await _text(store, keys.JOB_TITLE),
        company_name=await _text(store, keys.COMPANY),
        job_requirements=_string_list(await get_json(store, keys.JOB_REQUIREMENTS, [])),
        candidate_summary=await _text(store, keys.CANDIDATE_SUMMARY),
        job_offer_questions=_string_list(await get_json(store, keys.JOB_OFFER_QUESTIONS, [])),
        guest_interview_id=await _optional_text(store, keys.GUEST_INTERVIEW_ID),
        application_id=await _optional_text(store, keys.APPLICATION_ID),
        candidate_name=await _text(store, keys.GUEST_CANDIDATE_NAME),
        company=CompanyProfile(
            name=await _text(store, keys.COMPANY),
            size=await _text(store, keys.COMPANY_SIZE),
            sector=await _text(store, keys.COMPANY_SECTOR),
            about=await _text(store, keys.COMPANY_ABOUT),
            website=await _text(store, keys.COMPANY_WEBSITE),
        ),
        external_company=CompanyProfile(
            name=await _text(store, keys.EXTERNAL_COMPANY_NAME),
            email=await _text(store, keys.EXTERNAL_COMPANY_EMAIL),
            size=await _text(store, keys.EXTERNAL_COMPANY_SIZE),
            sector=await _text(store, keys.EXTERNAL_COMPANY_SECTOR),
            about=await _text(store, keys.EXTERNAL_COMPANY_ABOUT),
            website=await _text(store, keys.EXTERNAL_COMPANY_WEBSITE),
        ),
        overrides=VoiceOverrides(
            language=await _optional_text(store, keys.LANGUAGE),
            temperature=_optional_float(await store.get(keys.TTS_TEMPERATURE)),
            stability=_optional_float(await store.get(keys.TTS_STABILITY)),
            speed=_optional_float(await store.get(keys.TTS_SPEED)),
            similarity_boost=_optional_float(await store.get(keys.TTS_SIMILARITY_BOOST)),
        ),
    )


async def load_stored_user(store: DurableStore) -> CandidateIdentity | None:
    raw = await get_json(store, keys.AUTH_USER, None)
    if not isinstance(raw, dict):
        return None
    user_id = raw.get("id")
    if user_id is None or str(user_id).strip() == "":
        return None
    return CandidateIdentity(
        id=str(user_id),
        full_name=str(raw.get("full_name") or raw.get("name") or ""),
        email=str(raw.get("email") or ""),
        role=str(raw.get("role") or "candidate"),
    )


async def read_auth_token(store: DurableStore) -> str:
    return await _text(store, keys.AUTH_TOKEN)


async def clear_stale_interview_id(store: DurableStore) -> None:
    await store.remove(keys.INTERVIEW_ID)


async def persist_conversation_id(store: DurableStore, conversation_id: str) -> None:
    await store.set(keys.CONVERSATION_ID, conversation_id)


async def read_conversation_id(store: DurableStore) -> str | None:
    return await _optional_text(store, keys.CONVERSATION_ID)


async def persist_job_details(store: DurableStore, job_title: str, company_name: str) -> None:
    if job_title:
        await store.set(keys.JOB_TITLE, job_title)
    if company_name:
        await store.set(keys.COMPANY, company_name)


async def persist_interview_id(store: DurableStore, interview_id: str) -> None:
    await store.set(keys.INTERVIEW_ID, interview_id)


# field name on the incoming room context -> storage key
_CONTEXT_TEXT_KEYS = {
    "job_id": keys.JOB_ID,
    "job_title": keys.JOB_TITLE,
    "company_name": keys.COMPANY,
    "candidate_summary": keys.CANDIDATE_SUMMARY,
    "guest_interview_id": keys.GUEST_INTERVIEW_ID,
    "application_id": keys.APPLICATION_ID,
    "candidate_name": keys.GUEST_CANDIDATE_NAME,
    "language": keys.LANGUAGE,
    "tts_temperature": keys.TTS_TEMPERATURE,
    "tts_stability": keys.TTS_STABILITY,
    "tts_speed": keys.TTS_SPEED,
    "tts_similarity_boost": keys.TTS_SIMILARITY_BOOST,
}
_CONTEXT_LIST_KEYS = {
    "job_requirements": keys.JOB_REQUIREMENTS,
    "job_offer_questions": keys.JOB_OFFER_QUESTIONS,
}
_COMPANY_KEYS = {
    "size": keys.COMPANY_SIZE,
    "sector": keys.COMPANY_SECTOR,
    "about": keys.COMPANY_ABOUT,
    "website": keys.COMPANY_WEBSITE,
}
_EXTERNAL_COMPANY_KEYS = {
    "name": keys.EXTERNAL_COMPANY_NAME,
    "email": keys.EXTERNAL_COMPANY_EMAIL,
    "size": keys.EXTERNAL_COMPANY_SIZE,
    "sector": keys.EXTERNAL_COMPANY_SECTOR,
    "about": keys.EXTERNAL_COMPANY_ABOUT,
    "website": keys.EXTERNAL_COMPANY_WEBSITE,
}


async def _write_text(store: DurableStore, key: str, value) -> None:
    text = str(value).strip()
    if text:
        await store.set(key, text)
    else:
        await store.remove(key)


async def store_interview_context(store: DurableStore, values: dict) -> list[str]:
    """Write the fields present in ``values`` under their storage keys.

    Returns the keys touched. Company names may arrive either as
    ``company_name`` or inside ``company``; the explicit field wins.
    """
    written: list[str] = []

    company = dict(values.get("company") or {})
    if "company_name" not in values and company.get("name") is not None:
        values = {**values, "company_name": company["name"]}

    for field_name, key in _CONTEXT_TEXT_KEYS.items():
        if values.get(field_name) is not None:
            await _write_text(store, key, values[field_name])
            written.append(key)

    for field_name, key in _CONTEXT_LIST_KEYS.items():
        if values.get(field_name) is not None:
            await set_json(store, key, _string_list(values[field_name]))
            written.append(key)

    for section, mapping in (("company", _COMPANY_KEYS), ("external_company", _EXTERNAL_COMPANY_KEYS)):
        details = values.get(section) or {}
        for field_name, key in mapping.items():
            if details.get(field_name) is not None:
                await _write_text(store, key, details[field_name])
                written.append(key)

    user = values.get("user")
    if user is not None:
        await set_json(store, keys.AUTH_USER, {k: v for k, v in user.items() if v is not None})
        written.append(keys.AUTH_USER)

    return written
