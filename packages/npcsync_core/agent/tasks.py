"""Background threads for per-agent periodic work and fire-and-forget calls."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable
import logging
import threading


logger = logging.getLogger("npcsync_core.agent.tasks")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class PeriodicTask:
    """Runs ``fn`` on a daemon thread, waiting ``interval_seconds`` between runs.

    Errors raised by ``fn`` are logged and recorded; the loop keeps going.
    """

    def __init__(
        self,
        name: str,
        fn: Callable[[], Any],
        *,
        interval_seconds: float,
        on_stop: Callable[[], None] | None = None,
    ) -> None:
        self.name = name
        self._fn = fn
        self._interval_seconds = max(0.0, float(interval_seconds))
        self._on_stop = on_stop
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        self._runs = 0
        self._last_run_at: str | None = None
        self._last_error: str | None = None

    def start(self) -> bool:
        with self._state_lock:
            if self._thread and self._thread.is_alive():
                return False
            # A thread left over from a timed-out stop keeps its own, already set, event.
            self._stop_event = threading.Event()
            thread = threading.Thread(target=self._run_loop, args=(self._stop_event,), name=self.name, daemon=True)
            thread.start()
            self._thread = thread
            return True

    def stop(self, *, join_timeout_seconds: float = 3.0) -> bool:
        with self._state_lock:
            thread = self._thread
            if not thread:
                return False
            self._stop_event.set()
        if self._on_stop:
            self._on_stop()
        thread.join(timeout=max(0.1, float(join_timeout_seconds)))
        if thread.is_alive():
            logger.warning("[TASKS] %s still finishing its current run after stop", self.name)
        with self._state_lock:
            if self._thread is thread:
                self._thread = None
        return True

    def is_running(self) -> bool:
        with self._state_lock:
            return bool(self._thread and self._thread.is_alive())

    def status(self) -> dict[str, object]:
        return {
            "name": self.name,
            "running": self.is_running(),
            "interval_seconds": self._interval_seconds,
            "runs": self._runs,
            "last_run_at": self._last_run_at,
            "last_error": self._last_error,
        }

    def _run_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                self._fn()
                self._last_error = None
            except Exception as exc:
                self._last_error = f"{exc.__class__.__name__}: {exc}"
                logger.exception("[TASKS] %s iteration failed: %s", self.name, exc)
            self._runs += 1
            self._last_run_at = _utc_now()
            if self._interval_seconds > 0:
                stop_event.wait(self._interval_seconds)


class BackgroundNotifier:
    """Fire-and-forget calls on detached threads, observed only for logging.

    After :meth:`cancel`, outcomes of calls still in flight are ignored.
    """

    def __init__(self, owner: str) -> None:
        self._owner = owner
        self._lock = threading.Lock()
        self._threads: set[threading.Thread] = set()
        self._cancelled = False
        self._completed = 0

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    def submit(self, label: str, fn: Callable[[], Any]) -> threading.Thread | None:
        with self._lock:
            if self._cancelled:
                logger.debug("[TASKS] %s dropping %s after cancel", self._owner, label)
                return None
            thread = threading.Thread(
                target=self._run,
                args=(label, fn),
                name=f"{self._owner}-{label}",
                daemon=True,
            )
            self._threads.add(thread)
        thread.start()
        return thread

    def _run(self, label: str, fn: Callable[[], Any]) -> None:
        try:
            result = fn()
        except Exception as exc:
            with self._lock:
                cancelled = self._cancelled
            if not cancelled:
                logger.warning("[TASKS] %s %s raised: %s", self._owner, label, exc)
        else:
            with self._lock:
                cancelled = self._cancelled
            if cancelled:
                logger.debug("[TASKS] %s ignoring %s result after cancel", self._owner, label)
            elif getattr(result, "ok", True) is False:
                logger.warning(
                    "[TASKS] %s %s failed (%s); not retrying",
                    self._owner,
                    label,
                    getattr(result, "error_code", None),
                )
            else:
                logger.debug("[TASKS] %s %s completed", self._owner, label)
        finally:
            with self._lock:
                self._threads.discard(threading.current_thread())
                self._completed += 1

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True

    def reset(self) -> None:
        with self._lock:
            self._cancelled = False

    def join(self, timeout_seconds: float = 3.0) -> None:
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout=max(0.1, float(timeout_seconds)))
