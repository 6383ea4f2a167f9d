"""Drive one interview room end to end against a running backend.

Usage: python qa/run_room_smoke.py [ws://127.0.0.1:8000] [seconds-connected]

Needs real ELEVENLABS_AGENT_ID / ELEVENLABS_API_KEY on the server side; the
script only plays the browser: grants the microphone, streams silence, ends
the call and waits for the navigation message.
"""

import asyncio
import base64
import json
import sys
import time
import uuid

import websockets

SILENCE_FRAME = base64.b64encode(b"\x00\x00" * 1600).decode("ascii")


async def run(base_url: str, talk_seconds: float) -> None:
    client_id = f"smoke-{uuid.uuid4().hex[:12]}"
    url = f"{base_url.rstrip('/')}/ws/interview/room?client_id={client_id}"
    seen: list[str] = []

    async with websockets.connect(url) as ws:

        async def next_message(timeout: float = 20.0) -> dict:
            while True:
                data = json.loads(await asyncio.wait_for(ws.recv(), timeout=timeout))
                seen.append(str(data.get("type") or ""))
                if data.get("type") == "ping":
                    await ws.send(json.dumps({"type": "pong"}))
                    continue
                return data

        room = await next_message()
        print("ROOM", room)
        if not room.get("provider_ready"):
            raise RuntimeError("Server reports the voice provider is not configured")

        await ws.send(json.dumps({
            "type": "context",
            "context": {"job_title": "QA Engineer", "company_name": "Smoke Test Co", "candidate_name": "Smoke Tester"},
        }))
        while True:
            message = await next_message()
            if message.get("type") == "room":
                print("CONTEXT", message.get("job_title"), "@", message.get("company_name"))
                break

        await ws.send(json.dumps({"type": "start", "media": {"audio": True, "video": False}}))
        started = time.time()
        while True:
            state = await next_message()
            if state.get("type") != "state":
                continue
            print("STATE", state.get("connection_label"))
            if state.get("connection_status") == "connected":
                break
            if state.get("connection_status") == "error":
                raise RuntimeError(f"Connection failed: {state.get('error')}")
        print(f"CONNECTED after {time.time() - started:.2f}s session_id={state.get('session_id')}")

        deadline = time.time() + talk_seconds
        while time.time() < deadline:
            await ws.send(json.dumps({"type": "user_audio", "chunk": SILENCE_FRAME}))
            await asyncio.sleep(0.1)

        await ws.send(json.dumps({"type": "stop"}))
        while True:
            message = await next_message(timeout=30.0)
            if message.get("type") == "navigate":
                print("NAVIGATE", message)
                break

    print("MESSAGE_TYPES", sorted(set(seen)))


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else "ws://127.0.0.1:8000"
    seconds = float(sys.argv[2]) if len(sys.argv) > 2 else 5.0
    asyncio.run(run(target, seconds))
