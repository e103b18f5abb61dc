"""Watch mode: rerun the deploy pipeline when layer sources change.

Purpose
-------
Wrap the deploy pipeline in a debounced loop. A poller thread compares source
snapshots and signals changes; the main loop runs the pipeline once the
debounce window has passed.

Cancellation
------------
A change arriving while a run is in flight cancels that run's token. The
pipeline honours the token until it starts writing. Either way the loop then
performs exactly one fresh run for everything that happened meanwhile: changes
coalesce (last event wins) instead of queueing.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Hashable

from ..domain.errors import DeployCancelled, LayeredPromptsError
from ..observability import log_debug, log_info, log_warning
from .deploy import DeployResult
from .ports import CancelToken

_IDLE_SLEEP = 0.05


class WatchUseCase:
    """Debounced, cancel-aware deploy loop.

    Parameters
    ----------
    deploy:
        Runs one full pipeline with the given cancel token.
    snapshot:
        Returns a comparable fingerprint of the watched sources.
    on_result / on_error:
        Called after each completed run or failed run. Fatal pipeline errors do
        not stop watching; the next change triggers a new attempt.
    """

    def __init__(
        self,
        *,
        deploy: Callable[[CancelToken], DeployResult],
        snapshot: Callable[[], Hashable],
        debounce: float = 0.3,
        poll_interval: float = 0.25,
        on_result: Callable[[DeployResult], None] | None = None,
        on_error: Callable[[LayeredPromptsError], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._deploy = deploy
        self._snapshot = snapshot
        self.debounce = debounce
        self.poll_interval = poll_interval
        self._on_result = on_result
        self._on_error = on_error
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._dirty = False
        self._last_event = 0.0
        self._active: CancelToken | None = None
        self.cancelled_runs = 0

    def notify_change(self) -> None:
        """Record a change; cancels the in-flight run if it has not begun writing."""

        with self._lock:
            self._dirty = True
            self._last_event = self._clock()
            if self._active is not None:
                self._active.cancel()
        log_debug("watch_change", layer="watch", path=None)

    def run(self, stop: threading.Event | None = None, *, max_runs: int | None = None, poll: bool = True) -> list[DeployResult]:
        """Deploy once immediately, then after every debounced change.

        Returns the results of completed runs when *stop* is set or *max_runs*
        completed runs have happened.
        """

        stop = stop or threading.Event()
        with self._lock:
            self._dirty = True
            self._last_event = self._clock() - self.debounce
        poller = threading.Thread(target=self._poll, args=(stop,), name="lib-layered-prompts-watch", daemon=True)
        if poll:
            poller.start()
        results: list[DeployResult] = []
        try:
            while not stop.is_set():
                if not self._ready():
                    self._sleep(_IDLE_SLEEP)
                    continue
                outcome = self._run_once()
                if outcome is None:
                    continue
                results.append(outcome)
                if max_runs is not None and len(results) >= max_runs:
                    break
        finally:
            stop.set()
            if poll:
                poller.join()
        return results

    def _ready(self) -> bool:
        with self._lock:
            return self._dirty and self._clock() - self._last_event >= self.debounce

    def _run_once(self) -> DeployResult | None:
        token = CancelToken()
        with self._lock:
            self._dirty = False
            self._active = token
        try:
            result = self._deploy(token)
        except DeployCancelled:
            self.cancelled_runs += 1
            log_info("watch_run_superseded", layer="watch", path=None)
            return None
        except LayeredPromptsError as exc:
            log_warning("watch_run_failed", layer="watch", path=None, error=exc.message)
            if self._on_error is not None:
                self._on_error(exc)
            return None
        finally:
            with self._lock:
                self._active = None
        log_info("watch_run_finished", layer="watch", path=None, **result.summary())
        if self._on_result is not None:
            self._on_result(result)
        return result

    def _poll(self, stop: threading.Event) -> None:
        previous = self._snapshot()
        while not stop.wait(self.poll_interval):
            current = self._snapshot()
            if current != previous:
                previous = current
                self.notify_change()
