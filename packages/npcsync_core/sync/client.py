"""Best-effort HTTP client for the remote NPC status/dialogue service.

Every public operation returns a :class:`SyncResult`; transport failures,
non-2xx responses and undecodable payloads are reported as tagged errors and
never raised to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional
from urllib import error, parse, request
import json
import logging
import os

from pydantic import BaseModel, ConfigDict, Field, ValidationError


logger = logging.getLogger("npcsync_core.sync.client")

DEFAULT_SERVER_URL = "http://localhost:8000"
DEFAULT_TIMEOUT_SECONDS = 10.0


def _first_non_empty(*values: str | None) -> str | None:
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


class AgentStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_action: str
    description: str
    emoji: str
    location: str
    emotion: str

    def display_line(self) -> str:
        return f"{self.emoji} {self.current_action}".strip()


class StatusEnvelope(BaseModel):
    status: AgentStatus


class ChatReply(BaseModel):
    npc_id: str
    npc_name: str
    npc_response: str
    status: str = ""


class NpcInfo(BaseModel):
    npc_id: str
    name: str
    persona: str = ""


class NpcDirectory(BaseModel):
    npcs: list[NpcInfo] = Field(default_factory=list)
    total_count: int = 0


class SyncError(RuntimeError):
    kind = "sync"

    def __init__(self, message: str, *, error_code: str) -> None:
        super().__init__(message)
        self.error_code = error_code


class SyncTransportError(SyncError):
    kind = "transport"


class SyncHttpStatusError(SyncError):
    kind = "http_status"

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message, error_code=f"http_{status_code}")
        self.status_code = status_code


class SyncDecodeError(SyncError):
    kind = "decode"


@dataclass(frozen=True)
class SyncResult:
    ok: bool
    value: Any = None
    error: Optional[SyncError] = None

    @staticmethod
    def success(value: Any = None) -> SyncResult:
        return SyncResult(ok=True, value=value)

    @staticmethod
    def failure(exc: SyncError) -> SyncResult:
        return SyncResult(ok=False, error=exc)

    @property
    def error_kind(self) -> str | None:
        return self.error.kind if self.error else None

    @property
    def error_code(self) -> str | None:
        return self.error.error_code if self.error else None

    def as_dict(self) -> dict[str, Any]:
        value = self.value.model_dump() if isinstance(self.value, BaseModel) else self.value
        return {
            "ok": self.ok,
            "value": value,
            "error_kind": self.error_kind,
            "error_code": self.error_code,
            "error": str(self.error) if self.error else None,
        }


@dataclass(frozen=True)
class SyncClientConfig:
    base_url: str = DEFAULT_SERVER_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @staticmethod
    def from_env() -> SyncClientConfig:
        base_url = _first_non_empty(os.environ.get("NPCSYNC_SERVER_URL")) or DEFAULT_SERVER_URL
        raw_timeout = _first_non_empty(os.environ.get("NPCSYNC_HTTP_TIMEOUT_SECONDS"))
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT_SECONDS
        except ValueError:
            logger.warning("[SYNC] Ignoring invalid NPCSYNC_HTTP_TIMEOUT_SECONDS=%r", raw_timeout)
            timeout = DEFAULT_TIMEOUT_SECONDS
        return SyncClientConfig(base_url=base_url.rstrip("/"), timeout_seconds=max(0.2, timeout))


# (method, url, body, timeout) -> (status_code, response_body)
Transport = Callable[[str, str, Optional[bytes], float], tuple[int, bytes]]


def urllib_transport(method: str, url: str, body: bytes | None, timeout: float) -> tuple[int, bytes]:
    req = request.Request(url, method=method, data=body)
    if body is not None:
        req.add_header("Content-Type", "application/json")
    try:
        with request.urlopen(req, timeout=timeout) as response:
            return int(response.status), response.read()
    except error.HTTPError as exc:
        detail = b""
        try:
            detail = exc.read()
        except Exception:
            detail = b""
        return int(exc.code), detail
    except Exception as exc:
        raise SyncTransportError(f"Network error: {exc}", error_code="network_error") from exc


class SyncClient:
    """Client for the remote service, shared by all agents of a scene."""

    def __init__(
        self,
        config: SyncClientConfig | None = None,
        *,
        transport: Transport | None = None,
    ) -> None:
        self._config = config or SyncClientConfig.from_env()
        self._transport = transport or urllib_transport

    @property
    def base_url(self) -> str:
        return self._config.base_url

    def _url(self, path: str) -> str:
        return f"{self._config.base_url.rstrip('/')}{path}"

    @staticmethod
    def _npc_path(npc_id: str, suffix: str) -> str:
        return f"/npc/{parse.quote(str(npc_id), safe='')}/{suffix}"

    def _call(self, method: str, path: str, payload: Any = None, *, raw_body: bytes | None = None) -> bytes:
        body = raw_body
        if payload is not None:
            body = json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        try:
            status, raw = self._transport(method, self._url(path), body, self._config.timeout_seconds)
        except SyncError:
            raise
        except Exception as exc:
            raise SyncTransportError(f"Network error: {exc}", error_code="network_error") from exc
        if status < 200 or status >= 300:
            detail = raw.decode("utf-8", errors="replace")[:240] if raw else ""
            raise SyncHttpStatusError(f"HTTP {status} from {method} {path}: {detail}", status_code=status)
        return raw

    @staticmethod
    def _decode(raw: bytes, model: type[BaseModel]) -> Any:
        try:
            parsed = json.loads(raw.decode("utf-8"))
        except Exception as exc:
            raise SyncDecodeError("Response is not valid JSON", error_code="invalid_json") from exc
        try:
            return model.model_validate(parsed)
        except ValidationError as exc:
            raise SyncDecodeError(
                f"Response does not match {model.__name__}: {exc.error_count()} error(s)",
                error_code="invalid_payload",
            ) from exc

    def _guarded(self, operation: str, fn: Callable[[], Any]) -> SyncResult:
        try:
            return SyncResult.success(fn())
        except SyncDecodeError as exc:
            logger.error("[SYNC] %s decode error: %s", operation, exc)
            return SyncResult.failure(exc)
        except SyncError as exc:
            logger.warning("[SYNC] %s failed (%s): %s", operation, exc.error_code, exc)
            return SyncResult.failure(exc)

    def fetch_status(self, npc_id: str) -> SyncResult:
        def run() -> AgentStatus:
            raw = self._call("GET", self._npc_path(npc_id, "status"))
            return self._decode(raw, StatusEnvelope).status

        return self._guarded(f"fetch_status({npc_id})", run)

    def notify_interaction_end(self, npc_id: str) -> SyncResult:
        def run() -> None:
            self._call("POST", self._npc_path(npc_id, "end_interaction"), raw_body=b"")

        return self._guarded(f"notify_interaction_end({npc_id})", run)

    def register_locations(self, names: Iterable[str]) -> SyncResult:
        locations = sorted({str(name) for name in names if str(name).strip()})

        def run() -> None:
            self._call("POST", "/system/locations/update", {"locations": locations})
            logger.info("[SYNC] Registered %d locations with remote service", len(locations))

        return self._guarded("register_locations", run)

    def check_connection(self) -> SyncResult:
        def run() -> None:
            self._call("GET", "/")

        return self._guarded("check_connection", run)

    def send_chat(self, npc_id: str, player_message: str, player_name: str = "Player") -> SyncResult:
        def run() -> ChatReply:
            raw = self._call(
                "POST",
                "/chat",
                {"npc_id": npc_id, "player_message": player_message, "player_name": player_name},
            )
            return self._decode(raw, ChatReply)

        return self._guarded(f"send_chat({npc_id})", run)

    def list_npcs(self) -> SyncResult:
        def run() -> NpcDirectory:
            return self._decode(self._call("GET", "/npc/list"), NpcDirectory)

        return self._guarded("list_npcs", run)

    def create_npc(self, npc_id: str, name: str, persona: str) -> SyncResult:
        def run() -> None:
            self._call("POST", "/npc/create", {"npc_id": npc_id, "name": name, "persona": persona})
            logger.info("[SYNC] Remote NPC created: %s (%s)", name, npc_id)

        return self._guarded(f"create_npc({npc_id})", run)
