"""ElevenLabs Conversational AI session client.

A session is a websocket: we send the initiation payload, wait for the
provider to announce the conversation id, then keep reading in the background
so pings are answered and the end of the call is reported exactly once.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from typing import Any, Callable

import httpx
import websockets
from websockets.exceptions import ConnectionClosed

from core.config import HTTP_TIMEOUT_SEC, ProviderSettings
from core.logger import log_event
from interview_room.errors import ProviderConnectionError
from interview_room.provider.config import ConversationConfig
from interview_room.provider.events import Connected, Disconnected, EventChannel, ProviderError

logger = logging.getLogger("provider_client")

MAX_PROVIDER_MESSAGE_BYTES = 2**22


def _decode(raw: Any) -> dict:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    try:
        data = json.loads(str(raw or "{}"))
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def conversation_id_from(message: dict) -> str:
    if str(message.get("type") or "") != "conversation_initiation_metadata":
        return ""
    meta = message.get("conversation_initiation_metadata_event")
    if not isinstance(meta, dict):
        return ""
    return str(meta.get("conversation_id") or "").strip()


def pong_for(message: dict) -> dict | None:
    if str(message.get("type") or "") != "ping":
        return None
    ping_event = message.get("ping_event") if isinstance(message.get("ping_event"), dict) else {}
    return {"type": "pong", "event_id": ping_event.get("event_id")}


class ElevenLabsSession:
    def __init__(self, websocket, conversation_id: str, channel: EventChannel):
        self.id = conversation_id
        self._ws = websocket
        self._channel = channel
        self.events = channel.queue
        self._closing = False
        self._reader_task: asyncio.Task | None = None

    def start_reader(self) -> None:
        self._reader_task = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        reason = "remote_closed"
        try:
            async for raw in self._ws:
                message = _decode(raw)
                message_type = str(message.get("type") or "")
                pong = pong_for(message)
                if pong is not None:
                    await self._ws.send(json.dumps(pong))
                    continue
                if message_type == "error":
                    detail = str(message.get("message") or message.get("error") or "Provider error")
                    self._channel.emit(ProviderError(detail))
                    return
        except ConnectionClosed as exc:
            reason = "closed" if self._closing else f"connection_closed:{getattr(exc, 'code', '') or 'unknown'}"
        except asyncio.CancelledError:
            reason = "cancelled"
            raise
        except Exception as exc:
            logger.warning("Provider read loop failed | conversation_id=%s err=%s", self.id, exc)
            if not self._closing:
                self._channel.emit(ProviderError(str(exc) or exc.__class__.__name__))
                return
        finally:
            self._channel.emit(Disconnected(reason="closed" if self._closing else reason))
            log_event("provider", "session_reader_stopped", self.id, reason=reason)

    async def send_user_audio(self, chunk: bytes) -> None:
        if self._closing or self._channel.finished:
            return
        try:
            await self._ws.send(json.dumps({"user_audio_chunk": base64.b64encode(chunk).decode("ascii")}))
        except ConnectionClosed:
            logger.info("Dropped audio chunk after provider closed | conversation_id=%s", self.id)

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        try:
            await self._ws.close()
        except Exception as exc:
            logger.warning("Provider socket close failed | conversation_id=%s err=%s", self.id, exc)
        if self._reader_task is not None and not self._reader_task.done():
            try:
                await asyncio.wait_for(asyncio.shield(self._reader_task), timeout=5.0)
            except asyncio.TimeoutError:
                self._reader_task.cancel()
            except Exception as exc:
                logger.warning("Provider reader ended with error | conversation_id=%s err=%s", self.id, exc)
        self._channel.emit(Disconnected(reason="closed"))


class ElevenLabsClient:
    def __init__(
        self,
        settings: ProviderSettings,
        connect: Callable[..., Any] | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self._connect = connect or websockets.connect
        self._http_transport = http_transport

    async def _signed_url(self) -> str:
        url = f"{self.settings.api_url}/v1/convai/conversation/get_signed_url"
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SEC, transport=self._http_transport) as client:
            response = await client.get(
                url,
                params={"agent_id": self.settings.agent_id},
                headers={"xi-api-key": self.settings.api_key},
            )
        if response.status_code != 200:
            raise ProviderConnectionError(f"Could not obtain a signed session URL ({response.status_code})")
        signed_url = str((response.json() or {}).get("signed_url") or "")
        if not signed_url:
            raise ProviderConnectionError("Provider returned an empty signed URL")
        return signed_url

    async def _session_url(self) -> str:
        if self.settings.use_signed_url:
            return await self._signed_url()
        return f"{self.settings.ws_url}?agent_id={self.settings.agent_id}"

    async def open(self, config: ConversationConfig) -> ElevenLabsSession:
        missing = self.settings.missing_required()
        if missing:
            raise ProviderConnectionError(f"Voice provider not configured: missing {', '.join(missing)}")

        try:
            url = await self._session_url()
            websocket = await self._connect(url, max_size=MAX_PROVIDER_MESSAGE_BYTES)
        except ProviderConnectionError:
            raise
        except Exception as exc:
            raise ProviderConnectionError(f"Could not reach the interviewer: {exc}") from exc

        try:
            await websocket.send(json.dumps(config.initiation_payload(), ensure_ascii=False))
            conversation_id = ""
            while not conversation_id:
                message = _decode(await websocket.recv())
                pong = pong_for(message)
                if pong is not None:
                    await websocket.send(json.dumps(pong))
                    continue
                if str(message.get("type") or "") == "error":
                    raise ProviderConnectionError(str(message.get("message") or "Provider rejected the session"))
                conversation_id = conversation_id_from(message)
        except ProviderConnectionError:
            await websocket.close()
            raise
        except ConnectionClosed as exc:
            raise ProviderConnectionError(f"Interviewer closed the connection during setup ({exc})") from exc
        except Exception as exc:
            await websocket.close()
            raise ProviderConnectionError(f"Interviewer handshake failed: {exc}") from exc

        channel = EventChannel()
        session = ElevenLabsSession(websocket, conversation_id, channel)
        channel.emit(Connected(conversation_id))
        session.start_reader()
        log_event("provider", "session_opened", conversation_id, agent_id=self.settings.agent_id)
        return session
