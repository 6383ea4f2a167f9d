from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from core.config import HTTP_TIMEOUT_SEC
from core.logger import log_event

logger = logging.getLogger("transcript_fetcher")


@dataclass
class TranscriptEntry:
    speaker: str  # agent | user
    text: str
    timestamp: float = 0.0


def parse_transcript(payload: dict) -> list[TranscriptEntry]:
    entries: list[TranscriptEntry] = []
    raw_entries = payload.get("transcript") if isinstance(payload, dict) else None
    if not isinstance(raw_entries, list):
        return entries
    for item in raw_entries:
        if not isinstance(item, dict):
            continue
        text = str(item.get("message") or "").strip()
        if not text:
            continue
        try:
            timestamp = float(item.get("time_in_call_secs") or 0.0)
        except (TypeError, ValueError):
            timestamp = 0.0
        entries.append(TranscriptEntry(speaker=str(item.get("role") or "unknown"), text=text, timestamp=timestamp))
    return entries


class TranscriptFetcher:
    """Best-effort retrieval of a finished conversation transcript.

    Every failure returns ``None``; a missing transcript must never hold up
    the candidate leaving the room.
    """

    def __init__(self, api_url: str, api_key: str, transport: httpx.AsyncBaseTransport | None = None):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self._transport = transport

    async def fetch(self, session_id: str) -> list[TranscriptEntry] | None:
        if not session_id:
            return None

        url = f"{self.api_url}/v1/convai/conversations/{session_id}"
        try:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SEC, transport=self._transport) as client:
                response = await client.get(url, headers={"xi-api-key": self.api_key})
        except httpx.HTTPError as exc:
            logger.warning("Transcript fetch transport error | session_id=%s err=%s", session_id, exc)
            log_event("transcript", "fetch_failed", session_id, reason="transport")
            return None

        if not response.is_success:
            logger.warning(
                "Transcript fetch failed | session_id=%s status=%s body=%s",
                session_id,
                response.status_code,
                response.text[:200],
            )
            log_event("transcript", "fetch_failed", session_id, status=response.status_code)
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Transcript response was not JSON | session_id=%s", session_id)
            return None

        entries = parse_transcript(payload)
        log_event("transcript", "fetched", session_id, entries=len(entries))
        return entries
