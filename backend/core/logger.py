import json
import logging
from typing import Any

logging.basicConfig(
	format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
	level=logging.INFO,
)

logger = logging.getLogger("interview_room")

# candidate speech and profile text never reach the logs, only their size
_TEXT_KEYS = frozenset({"text", "transcript", "message", "candidate_summary", "chunk"})
_SECRET_KEYS = frozenset({"token", "api_key", "xi_api_key", "authorization", "signed_url"})


def _redact(key: str, value: Any) -> Any:
	name = str(key or "").lower()
	if name in _SECRET_KEYS:
		return "***" if value else ""
	if isinstance(value, (bytes, bytearray)):
		return {"bytes": len(value)}
	if name in _TEXT_KEYS:
		return {"redacted": True, "length": len(str(value or ""))}
	if value is None or isinstance(value, (str, int, float, bool)):
		return value
	if isinstance(value, dict):
		return {str(k): _redact(str(k), v) for k, v in value.items()}
	if isinstance(value, (list, tuple, set, frozenset)):
		return [_redact(name, item) for item in value]
	return str(value)


def log_event(component: str, event: str, session_id: str | None, **fields) -> None:
	"""One JSON line per lifecycle event, keyed by the provider session id."""
	record = {
		"component": component or "interview_room",
		"event": event or "unknown",
		"session_id": session_id or "",
	}
	for key, value in fields.items():
		record[key] = _redact(key, value)
	logger.info(json.dumps(record, ensure_ascii=False, default=str))
