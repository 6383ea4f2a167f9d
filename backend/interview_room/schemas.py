from typing import Literal

from pydantic import BaseModel


class MediaPermissions(BaseModel):
    audio: bool | None = None
    video: bool | None = None


class CompanyDetails(BaseModel):
    name: str | None = None
    email: str | None = None
    size: str | None = None
    sector: str | None = None
    about: str | None = None
    website: str | None = None


class StoredUser(BaseModel):
    id: int | str
    full_name: str | None = None
    email: str | None = None
    role: str | None = None


class RoomContext(BaseModel):
    """What the application or invitation pages hand over before the room opens.

    Omitted fields keep their stored value; an empty string clears it.
    """
    job_id: int | str | None = None
    job_title: str | None = None
    company_name: str | None = None
    job_requirements: list[str] | None = None
    candidate_summary: str | None = None
    job_offer_questions: list[str] | None = None
    guest_interview_id: int | str | None = None
    application_id: int | str | None = None
    candidate_name: str | None = None
    user: StoredUser | None = None
    language: str | None = None
    company: CompanyDetails | None = None
    external_company: CompanyDetails | None = None
    tts_temperature: float | None = None
    tts_stability: float | None = None
    tts_speed: float | None = None
    tts_similarity_boost: float | None = None


class ClientMessage(BaseModel):
    type: Literal[
        "start",
        "stop",
        "context",
        "toggle_mute",
        "toggle_camera",
        "toggle_screen_share",
        "media_permission",
        "user_audio",
        "pong",
    ]
    media: MediaPermissions | None = None
    context: RoomContext | None = None
    audio: bool | None = None
    video: bool | None = None
    chunk: str | None = None


class HealthResponse(BaseModel):
    status: str
    provider_configured: bool
    missing: list[str] = []
