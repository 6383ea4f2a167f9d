import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=False)

_TRUTHY = {"1", "true", "yes", "on"}


def env_flag(name: str, default: str = "false") -> bool:
    return str(os.getenv(name, default)).strip().lower() in _TRUTHY


API_BASE_URL = str(os.getenv("API_BASE_URL") or "http://localhost:8000").strip().rstrip("/")
ELEVENLABS_API_URL = str(os.getenv("ELEVENLABS_API_URL") or "https://api.elevenlabs.io").strip().rstrip("/")
ELEVENLABS_WS_URL = str(
    os.getenv("ELEVENLABS_WS_URL") or "wss://api.elevenlabs.io/v1/convai/conversation"
).strip()
AUDIO_LEVEL_INTERVAL_SEC = max(0.02, float(os.getenv("AUDIO_LEVEL_INTERVAL_SEC", "0.1")))
HTTP_TIMEOUT_SEC = max(1.0, float(os.getenv("HTTP_TIMEOUT_SEC", "10.0")))
QA_MODE = env_flag("QA_MODE")


@dataclass(frozen=True)
class ProviderSettings:
    """Credentials and endpoints for the conversational voice provider."""

    agent_id: str
    api_key: str
    api_url: str
    ws_url: str
    use_signed_url: bool

    @classmethod
    def from_env(cls) -> "ProviderSettings":
        return cls(
            agent_id=os.getenv("ELEVENLABS_AGENT_ID", "").strip(),
            api_key=os.getenv("ELEVENLABS_API_KEY", "").strip(),
            api_url=ELEVENLABS_API_URL,
            ws_url=ELEVENLABS_WS_URL,
            use_signed_url=env_flag("ELEVENLABS_USE_SIGNED_URL"),
        )

    def missing_required(self) -> list[str]:
        missing = []
        if not self.agent_id:
            missing.append("ELEVENLABS_AGENT_ID")
        # the public websocket only needs the agent id; everything else talks REST
        if not self.api_key:
            missing.append("ELEVENLABS_API_KEY")
        return missing

    def is_ready(self) -> bool:
        return not self.missing_required()
