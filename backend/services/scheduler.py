from __future__ import annotations

import heapq
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from backend.services.clock import Clock, SystemClock
from backend.services.procurement import default_arrival_delay, mark_arrival, process_pending_arrivals

logger = logging.getLogger(__name__)


class ArrivalScheduler:
    """
    Planificateur des arrivées de riordini.

    - file en mémoire (due_at, restock_id) : déclencheurs "one-shot"
    - balayage périodique de la base : rattrape tout ce que la file a perdu
      (redémarrage du process), c'est lui qui rend le mécanisme durable
    - horloge injectée : les tests avancent une FakeClock au lieu de dormir

    Un échec de déclencheur est journalisé, jamais remonté.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        clock: Clock | None = None,
        delay: timedelta | None = None,
        sweep_interval: float = 5.0,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.delay = delay if delay is not None else default_arrival_delay()
        self.sweep_interval = sweep_interval

        self._queue: list[tuple[datetime, int]] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    # ---------- FILE ----------
    def schedule(self, restock_id: int, due_at: datetime | None = None) -> datetime:
        due_at = due_at or (self.clock.now() + self.delay)
        with self._lock:
            heapq.heappush(self._queue, (due_at, int(restock_id)))
        logger.debug("arrival scheduled restock=%s due_at=%s", restock_id, due_at.isoformat())
        return due_at

    def pending(self) -> list[tuple[datetime, int]]:
        with self._lock:
            return sorted(self._queue)

    def _pop_due(self, now: datetime) -> list[int]:
        due = []
        with self._lock:
            while self._queue and self._queue[0][0] <= now:
                due.append(heapq.heappop(self._queue)[1])
        return due

    def run_due(self) -> list[int]:
        now = self.clock.now()
        applied = []
        for restock_id in self._pop_due(now):
            db = self.session_factory()
            try:
                if mark_arrival(db, restock_id, now=now) is not None:
                    applied.append(restock_id)
            except Exception:
                logger.exception("delayed arrival failed restock=%s", restock_id)
            finally:
                db.close()
        return applied

    # ---------- BALAYAGE ----------
    def sweep(self) -> list[int]:
        db = self.session_factory()
        try:
            return process_pending_arrivals(db, now=self.clock.now(), delay=self.delay)
        finally:
            db.close()

    def tick(self) -> list[int]:
        applied = self.run_due()
        try:
            applied.extend(self.sweep())
        except Exception:
            logger.exception("arrival sweep failed")
        return applied

    # ---------- THREAD ----------
    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="arrival-scheduler", daemon=True)
        self._thread.start()
        logger.info("arrival scheduler started interval=%ss delay=%ss", self.sweep_interval, self.delay.total_seconds())

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.info("arrival scheduler stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            try:
                self.tick()
            except Exception:
                logger.exception("arrival scheduler tick failed")
