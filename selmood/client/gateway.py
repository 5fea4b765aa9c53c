"""
Persistence gateway: remote first, local on any failure.

Design rules:
- UI code calls ONLY this facade, never RemoteStore/LocalStore directly.
- Remote failures (unreachable, timeout, non-2xx, bad body) never reach the
  caller: create/submit fall back to local storage, fetch tags its source.
- Local storage I/O errors (OSError) do propagate from create/submit; a
  background submit only logs them, as it logs submits made after close().
- A score outside 1-5 is a caller error and raises ValueError before any I/O.
- There is no retry and no resync: a failed remote call is logged and the
  local result is final.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from .config import ClientConfig, get_config
from .log import get_logger
from .models import MAX_SCORE, MIN_SCORE, SOURCE_DB, SOURCE_LOCAL, FetchResult, SubmitAck, UserProfile
from .report import assemble_report
from .stores import FileKeyValueStore, LocalStore, RemoteStore, RemoteUnavailable

logger = get_logger(__name__)


class PersistenceGateway:
    def __init__(self, remote: RemoteStore, local: LocalStore, cfg: ClientConfig, max_workers: int = 2) -> None:
        self.remote = remote
        self.local = local
        self.cfg = cfg
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="selmood-submit")
        self._closed = False

    def create_profile(self, name: str, avatar: str, grade: str, gender: str) -> UserProfile:
        try:
            return self.remote.create_profile(name, avatar, grade, gender, self.cfg.login_timeout_ms)
        except RemoteUnavailable as exc:
            logger.warning("Backend unreachable or timed out, creating profile locally: %s", exc)
        return self.local.create_profile(name, avatar, grade, gender)

    def submit_response(self, user_id: int, question_id: int, score: int) -> SubmitAck:
        if not MIN_SCORE <= score <= MAX_SCORE:
            raise ValueError(f"score must be between {MIN_SCORE} and {MAX_SCORE}, got {score}")
        try:
            return self.remote.submit_response(user_id, question_id, score, self.cfg.submit_timeout_ms)
        except RemoteUnavailable as exc:
            logger.warning("Saving response locally: %s", exc)
        return self.local.submit_response(user_id, question_id, score)

    def submit_response_in_background(self, user_id: int, question_id: int, score: int) -> None:
        """Dispatch submit_response without waiting for it.

        Callers must not assume the answer is stored when this returns. The
        future is not handed back; failures only show up in the log.
        """
        if self._closed:
            logger.error("Gateway closed, dropping response for user %s question %s.", user_id, question_id)
            return
        future = self._executor.submit(self.submit_response, user_id, question_id, score)
        future.add_done_callback(_log_background_failure)

    def fetch_all_responses(self) -> FetchResult:
        try:
            rows = self.remote.fetch_all_responses(self.cfg.fetch_timeout_ms)
            return FetchResult(source=SOURCE_DB, data=rows)
        except RemoteUnavailable as exc:
            logger.warning("Backend unreachable, returning local storage data: %s", exc)
        rows = assemble_report(self.local.users(), self.local.responses())
        return FetchResult(source=SOURCE_LOCAL, data=rows)

    def clear_local_data(self) -> None:
        self.local.clear()

    def close(self, wait: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait)
        self.remote.close()


def _log_background_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Background response submission dropped.", exc_info=exc)


def build_gateway(cfg: Optional[ClientConfig] = None) -> PersistenceGateway:
    cfg = cfg or get_config()
    return PersistenceGateway(
        remote=RemoteStore(cfg.api_url),
        local=LocalStore(FileKeyValueStore(cfg.local_store_path)),
        cfg=cfg,
    )
