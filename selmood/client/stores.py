"""
Remote and local persistence strategies behind the gateway.

- RemoteStore talks to the REST backend with a per-call timeout and raises
  RemoteUnavailable for every failure class (network, timeout, non-2xx, bad body).
- LocalStore keeps two JSON arrays ("sel_users", "sel_responses") in a
  key-value backend and synthesizes the ids and timestamps the server would assign.
"""

from __future__ import annotations

import json
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Protocol

import requests
from pydantic import TypeAdapter, ValidationError

from .log import get_logger
from .models import (
    STATUS_SAVED_LOCAL,
    ResponseRecord,
    SubmitAck,
    UserProfile,
)

logger = get_logger(__name__)

USERS_KEY = "sel_users"
RESPONSES_KEY = "sel_responses"

_ROWS = TypeAdapter(List[dict])


class RemoteUnavailable(RuntimeError):
    pass


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStore:
    """String key-value pairs persisted as one JSON document on disk.

    Every write rewrites the whole file through a temp file + rename, so a
    reader never sees a half-written document.
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as exc:
            logger.warning("Local storage file %s unreadable, starting empty: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Local storage file %s is not an object, starting empty.", self.path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)

    def clear(self, keys: List[str]) -> None:
        data = self._load()
        if any(key in data for key in keys):
            for key in keys:
                data.pop(key, None)
            self._dump(data)


class MillisIdFactory:
    # Epoch milliseconds, bumped past the last issued value so ids stay unique in-process.
    def __init__(self, clock=time.time) -> None:
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            now_ms = int(self._clock() * 1000)
            self._last = max(now_ms, self._last + 1)
            return self._last


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _abort(resp) -> None:
    # Shut the socket under a response another thread is still reading; its read returns at once.
    raw = getattr(resp, "raw", None)
    conn = getattr(raw, "connection", None) or getattr(raw, "_connection", None)
    sock = getattr(conn, "sock", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as exc:
        logger.debug("Socket already closed while aborting: %s", exc)


class RemoteStore:
    """HTTP strategy. Each call is bounded by a wall-clock deadline.

    The request runs on a worker thread and the caller waits at most
    ``timeout_ms`` for the whole exchange (connect, headers and body). Past the
    deadline the socket under the in-flight response is shut down, which aborts
    a body that is still trickling in, and the call raises RemoteUnavailable.
    """

    def __init__(self, base_url: str, session: Optional[requests.Session] = None, max_workers: int = 4) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="selmood-remote")

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _exchange(self, method: str, path: str, timeout: float, json_body: Optional[dict], in_flight: dict):
        resp = self.session.request(method, self._url(path), json=json_body, timeout=timeout, stream=True)
        in_flight["resp"] = resp
        try:
            if not resp.ok:
                return resp.status_code, None
            return resp.status_code, resp.content
        finally:
            resp.close()

    def _request(self, method: str, path: str, timeout_ms: int, json_body: Optional[dict] = None):
        timeout = timeout_ms / 1000.0
        in_flight: dict = {}
        try:
            future = self._pool.submit(self._exchange, method, path, timeout, json_body, in_flight)
        except RuntimeError as exc:
            raise RemoteUnavailable(f"{method} {path} skipped, remote store is closed") from exc
        try:
            status_code, body = future.result(timeout=timeout)
        except FutureTimeout as exc:
            future.cancel()
            _abort(in_flight.get("resp"))
            raise RemoteUnavailable(f"{method} {path} exceeded {timeout_ms} ms") from exc
        except requests.RequestException as exc:
            raise RemoteUnavailable(f"{method} {path} failed: {type(exc).__name__}") from exc
        if body is None:
            raise RemoteUnavailable(f"{method} {path} rejected ({status_code})")
        try:
            return json.loads(body)
        except ValueError as exc:
            raise RemoteUnavailable(f"{method} {path} returned a non-JSON body") from exc

    def close(self) -> None:
        self._pool.shutdown(wait=False)

    def create_profile(self, name: str, avatar: str, grade: str, gender: str, timeout_ms: int) -> UserProfile:
        payload = self._request(
            "POST",
            "/login",
            timeout_ms,
            {"name": name, "avatar": avatar, "grade": grade, "gender": gender},
        )
        try:
            return UserProfile.model_validate(payload)
        except ValidationError as exc:
            raise RemoteUnavailable("POST /login returned an invalid profile") from exc

    def submit_response(self, user_id: int, question_id: int, score: int, timeout_ms: int) -> SubmitAck:
        payload = self._request(
            "POST",
            "/response",
            timeout_ms,
            {"user_id": user_id, "question_id": question_id, "score": score},
        )
        try:
            return SubmitAck.model_validate(payload)
        except ValidationError as exc:
            raise RemoteUnavailable("POST /response returned an invalid acknowledgement") from exc

    def fetch_all_responses(self, timeout_ms: int) -> List[dict]:
        payload = self._request("GET", "/admin/responses", timeout_ms)
        try:
            return _ROWS.validate_python(payload)
        except ValidationError as exc:
            raise RemoteUnavailable("GET /admin/responses returned an invalid row list") from exc


class LocalStore:
    def __init__(self, backend: KeyValueStore, id_factory=None, now=utc_now_iso) -> None:
        self.backend = backend
        self.next_id = id_factory or MillisIdFactory()
        self.now = now
        self._lock = threading.Lock()

    def _read(self, key: str) -> List[dict]:
        raw = self.backend.get(key)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except ValueError:
            logger.warning("Local collection %s is corrupt, treating it as empty.", key)
            return []
        if not isinstance(items, list):
            logger.warning("Local collection %s is not a list, treating it as empty.", key)
            return []
        return [item for item in items if isinstance(item, dict)]

    def _append(self, key: str, item: dict) -> None:
        with self._lock:
            items = self._read(key)
            items.append(item)
            self.backend.set(key, json.dumps(items, ensure_ascii=False))

    def _read_valid(self, key: str, model) -> List[dict]:
        valid = []
        for item in self._read(key):
            try:
                valid.append(model.model_validate(item).model_dump())
            except ValidationError:
                logger.warning("Skipping malformed entry in local collection %s.", key)
        return valid

    def users(self) -> List[dict]:
        return self._read_valid(USERS_KEY, UserProfile)

    def responses(self) -> List[dict]:
        return self._read_valid(RESPONSES_KEY, ResponseRecord)

    def create_profile(self, name: str, avatar: str, grade: str, gender: str) -> UserProfile:
        user = UserProfile(id=self.next_id(), name=name, avatar=avatar, grade=grade, gender=gender)
        self._append(USERS_KEY, user.model_dump())
        return user

    def submit_response(self, user_id: int, question_id: int, score: int) -> SubmitAck:
        record = ResponseRecord(
            id=self.next_id(),
            user_id=user_id,
            question_id=question_id,
            score=score,
            timestamp=self.now(),
        )
        self._append(RESPONSES_KEY, record.model_dump())
        return SubmitAck(id=record.id, status=STATUS_SAVED_LOCAL)

    def clear(self) -> None:
        with self._lock:
            clear_keys = getattr(self.backend, "clear", None)
            if clear_keys is not None:
                clear_keys([USERS_KEY, RESPONSES_KEY])
                return
            self.backend.remove(USERS_KEY)
            self.backend.remove(RESPONSES_KEY)
