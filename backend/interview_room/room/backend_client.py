from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from core.config import API_BASE_URL, HTTP_TIMEOUT_SEC
from interview_room.errors import ApiError

logger = logging.getLogger("backend_client")


def _error_detail(response: httpx.Response) -> str:
    message = f"Failed to fetch data: {response.status_code}"
    try:
        data = response.json()
    except ValueError:
        text = response.text.strip()
        return f"{message} - {text}" if text else message
    if isinstance(data, dict) and data.get("detail"):
        return str(data["detail"])
    return message


def _numeric_id(value: str) -> int | str:
    text = str(value).strip()
    return int(text) if text.isdigit() else text


class BackendClient:
    """Thin JSON client for the recruiting backend.

    Only the calls the interview room needs live here; everything else in
    the web app talks to the backend on its own.
    """

    def __init__(
        self,
        token: str = "",
        base_url: str = API_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._transport = transport

    def _headers(self, with_body: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if with_body:
            headers["Content-Type"] = "application/json"
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def request(self, method: str, path: str, json_body: Any = None, params: dict | None = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.info("%s request to: %s", method, url)
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SEC, transport=self._transport) as client:
            response = await client.request(
                method,
                url,
                headers=self._headers(json_body is not None),
                json=json_body,
                params=params,
            )

        if not response.is_success:
            detail = _error_detail(response)
            logger.warning("Backend request failed | method=%s url=%s status=%s", method, url, response.status_code)
            raise ApiError(response.status_code, detail)
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    async def fetch_job(self, job_id: str) -> dict:
        data = await self.request("GET", f"/api/jobs/{job_id}")
        return data if isinstance(data, dict) else {}

    async def fetch_job_questions(self, job_id: str) -> list[str]:
        data = await self.request("GET", "/api/v1/job-questions", params={"job_offer_id": job_id})
        items = data.get("questions", data) if isinstance(data, dict) else data
        questions = []
        for item in items if isinstance(items, list) else []:
            text = item.get("question") if isinstance(item, dict) else item
            if text and str(text).strip():
                questions.append(str(text).strip())
        return questions

    async def complete_guest_interview(self, guest_interview_id: str, conversation_id: str | None = None) -> dict:
        body = {"conversation_id": conversation_id} if conversation_id else {}
        data = await self.request("POST", f"/api/guest-interviews/{guest_interview_id}/complete", json_body=body)
        return data if isinstance(data, dict) else {}

    async def create_interview(self, candidate_id: str, job_id: str) -> dict:
        """Record a finished interview for a signed-in candidate; the review page reads it back."""
        body = {
            "candidate_id": _numeric_id(candidate_id),
            "job_id": _numeric_id(job_id),
            "date": datetime.now(timezone.utc).isoformat(),
            "status": "completed",
        }
        data = await self.request("POST", "/api/interviews/", json_body=body)
        return data if isinstance(data, dict) else {}
