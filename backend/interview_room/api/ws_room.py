import asyncio
import json
import logging
import os
import time
import uuid

from fastapi import APIRouter, WebSocket
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from core.config import ProviderSettings
from core.logger import log_event
from interview_room.api.task_group import ConnectionTaskGroup
from interview_room.api.ws_room_components import CommandRouter, StateEmitter, decode_audio_chunk
from interview_room.media.acquisition import MediaAcquirer
from interview_room.media.devices import ClientMediaDevices
from interview_room.provider.client import ElevenLabsClient
from interview_room.provider.transcript import TranscriptFetcher
from interview_room.room.backend_client import BackendClient
from interview_room.room.controller import InterviewRoomController
from interview_room.room.policy import TerminalDecision
from interview_room.room.registry import room_registry
from interview_room.schemas import ClientMessage
from interview_room.session.coordinator import ConversationCoordinator
from interview_room.session.machine import SessionState
from interview_room.storage import keys
from interview_room.storage.durable_store import DurableStore, NamespacedStore, build_durable_store
from interview_room.system_metrics import decrement_metric, increment_metric, record_room_disconnect

router = APIRouter()

logging.basicConfig(
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger("ws_room")

MAX_WS_TEXT_BYTES = max(1024, int(os.getenv("WS_MAX_TEXT_BYTES", "262144")))
WS_HEARTBEAT_INTERVAL_SEC = max(1.0, float(os.getenv("WS_HEARTBEAT_INTERVAL_SEC", "15")))
WS_HEARTBEAT_TIMEOUT_SEC = max(WS_HEARTBEAT_INTERVAL_SEC * 2, float(os.getenv("WS_HEARTBEAT_TIMEOUT_SEC", "45")))
TERMINAL_FLUSH_TIMEOUT_SEC = 15.0

_store: DurableStore | None = None


def get_room_store() -> DurableStore:
    global _store
    if _store is None:
        _store = build_durable_store()
    return _store


def _normalize_client_id(raw_client_id: str) -> str:
    value = str(raw_client_id or "").strip().lower()
    if not value or len(value) > 64:
        return ""
    if not all(ch.isalnum() or ch in {"-", "_"} for ch in value):
        return ""
    return value


def _token_from(websocket: WebSocket) -> str:
    auth_header = str(websocket.headers.get("authorization") or "").strip()
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    return str(websocket.query_params.get("token") or "").strip()


def build_backend_client(token: str) -> BackendClient:
    return BackendClient(token)


def build_coordinator(store: DurableStore, devices: ClientMediaDevices) -> ConversationCoordinator:
    settings = ProviderSettings.from_env()
    return ConversationCoordinator(
        provider_client=ElevenLabsClient(settings),
        media=MediaAcquirer(devices),
        transcript_fetcher=TranscriptFetcher(settings.api_url, settings.api_key),
        store=store,
    )


@router.websocket("/ws/interview/room")
async def interview_room_ws(websocket: WebSocket):
    tasks = ConnectionTaskGroup()
    client_id = _normalize_client_id(websocket.query_params.get("client_id") or "") or str(uuid.uuid4())
    store = NamespacedStore(get_room_store(), client_id)
    token = _token_from(websocket)
    if token:
        await store.set(keys.AUTH_TOKEN, token)

    await websocket.accept()
    send_lock = asyncio.Lock()
    last_pong_ts = time.time()

    async def _safe_send(payload: dict):
        if websocket.client_state != WebSocketState.CONNECTED:
            return
        try:
            encoded = json.dumps(payload)
        except (TypeError, ValueError) as exc:
            logger.warning("ws payload encode failed | client_id=%s err=%s", client_id, exc)
            return
        try:
            async with send_lock:
                await websocket.send_text(encoded)
        except Exception as exc:
            logger.warning("ws send failed | client_id=%s err=%s", client_id, exc)

    emitter = StateEmitter(send_fn=_safe_send)
    devices = ClientMediaDevices()
    coordinator = build_coordinator(store, devices)

    async def navigate(decision: TerminalDecision) -> None:
        await emitter.emit_navigation(decision)
        tasks.request_stop("terminal")

    controller = InterviewRoomController(store, coordinator, navigate, backend_factory=build_backend_client)
    room_id = controller.room_id

    def _log_event(event: str, **fields):
        log_event("ws_room", event, room_id, client_id=client_id, **fields)

    async def push_state(state: SessionState) -> None:
        room_registry.touch(room_id)
        await emitter.emit_state(state)

    await controller.mount()
    coordinator.add_listener(push_state)
    room_registry.register(room_id, client_id, controller)
    increment_metric("rooms_active", 1)
    _log_event("connect", authenticated=controller.candidate is not None)

    async def send_room_info() -> None:
        context = controller.context
        await _safe_send({
            "type": "room",
            "room_id": room_id,
            "job_title": context.job_title or "",
            "company_name": context.company_name or "",
            "guest": bool(context.guest_interview_id),
            "authenticated": controller.candidate is not None,
            "provider_ready": ProviderSettings.from_env().is_ready(),
        })

    await send_room_info()
    await emitter.emit_state(coordinator.state)

    # ================= COMMANDS =================
    commands = CommandRouter()

    async def on_start(message: ClientMessage):
        if message.media is not None:
            devices.declare(audio=message.media.audio, video=message.media.video)
        tasks.create_task(controller.start_interview())

    async def on_context(message: ClientMessage):
        if message.context is None:
            await emitter.emit_error("Missing context")
            return
        if not await controller.update_context(message.context.model_dump(exclude_none=True)):
            await emitter.emit_error("Interview already started")
            return
        await send_room_info()

    async def on_stop(message: ClientMessage):
        tasks.create_task(controller.end_interview())

    async def on_toggle_mute(message: ClientMessage):
        await controller.toggle_mute()

    async def on_toggle_camera(message: ClientMessage):
        await controller.toggle_camera()

    async def on_toggle_screen_share(message: ClientMessage):
        await controller.toggle_screen_share()

    async def on_media_permission(message: ClientMessage):
        devices.declare(audio=message.audio, video=message.video)

    async def on_user_audio(message: ClientMessage):
        chunk = decode_audio_chunk(message.chunk)
        if chunk:
            await coordinator.push_audio(chunk)

    async def on_pong(message: ClientMessage):
        nonlocal last_pong_ts
        last_pong_ts = time.time()

    commands.on("start", on_start)
    commands.on("stop", on_stop)
    commands.on("context", on_context)
    commands.on("toggle_mute", on_toggle_mute)
    commands.on("toggle_camera", on_toggle_camera)
    commands.on("toggle_screen_share", on_toggle_screen_share)
    commands.on("media_permission", on_media_permission)
    commands.on("user_audio", on_user_audio)
    commands.on("pong", on_pong)

    async def receive_commands():
        nonlocal last_pong_ts
        while not tasks.stop_event.is_set():
            msg = await websocket.receive()
            if msg["type"] == "websocket.disconnect":
                _log_event("disconnect", reason="client_disconnect")
                tasks.request_stop("client_disconnect")
                return

            text_payload = msg.get("text")
            if not text_payload:
                continue
            last_pong_ts = time.time()
            if len(text_payload.encode("utf-8")) > MAX_WS_TEXT_BYTES:
                logger.warning("WS message too large, dropped | client_id=%s bytes=%s", client_id, len(text_payload.encode("utf-8")))
                continue

            try:
                message = ClientMessage.model_validate(json.loads(text_payload))
            except (json.JSONDecodeError, ValidationError) as exc:
                logger.warning("Rejected client message | client_id=%s err=%s", client_id, str(exc).splitlines()[0])
                await emitter.emit_error("Unsupported message")
                continue

            if message.type != "user_audio":
                _log_event("message_received", message_type=message.type)
            await commands.route(message)

    async def websocket_heartbeat():
        while not tasks.stop_event.is_set():
            await asyncio.sleep(WS_HEARTBEAT_INTERVAL_SEC)
            if websocket.client_state != WebSocketState.CONNECTED:
                tasks.request_stop("client_disconnect")
                return
            if (time.time() - last_pong_ts) > WS_HEARTBEAT_TIMEOUT_SEC:
                _log_event("heartbeat_timeout", timeout_sec=WS_HEARTBEAT_TIMEOUT_SEC)
                tasks.request_stop("heartbeat_timeout")
                return
            await _safe_send({"type": "ping", "ts": time.time()})

    # ================= RUN TASKS =================
    tasks.create_task(receive_commands())
    tasks.create_task(websocket_heartbeat())

    try:
        await tasks.stop_event.wait()
        if tasks.stop_reason == "terminal":
            try:
                await controller.wait_for_terminal(TERMINAL_FLUSH_TIMEOUT_SEC)
            except asyncio.TimeoutError:
                logger.warning("Terminal transition did not settle | room_id=%s", room_id)
    finally:
        await tasks.stop()
        await controller.unmount()
        room_registry.mark_inactive(room_id)
        decrement_metric("rooms_active", 1)
        record_room_disconnect(tasks.stop_reason)
        _log_event("session_stopped", reason=tasks.stop_reason)
        if websocket.client_state == WebSocketState.CONNECTED:
            try:
                await websocket.close(code=1000)
            except RuntimeError as exc:
                logger.warning("Room socket already closed | room_id=%s err=%s", room_id, exc)
