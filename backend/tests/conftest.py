import base64
import json
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("QA_MODE", "true")
    monkeypatch.setenv("ELEVENLABS_AGENT_ID", "agent-test")
    monkeypatch.setenv("ELEVENLABS_API_KEY", "xi-test-key")
    monkeypatch.setenv("DURABLE_STORE_PATH", str(tmp_path / "durable_store.json"))
    monkeypatch.delenv("USE_REDIS_DURABLE_STORE", raising=False)


@pytest.fixture
def store(tmp_path: Path):
    from interview_room.storage.durable_store import LocalDurableStore

    return LocalDurableStore(tmp_path / "room_store.json")


@pytest.fixture
def dev_jwt_token() -> str:
    def _enc(obj: dict) -> str:
        raw = json.dumps(obj, separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")

    header = _enc({"alg": "HS256", "typ": "JWT"})
    payload = _enc({"sub": "candidate-42", "full_name": "Ada Lovelace", "email": "ada@example.com", "iat": 0})
    return f"{header}.{payload}.c2lnbmF0dXJl"
