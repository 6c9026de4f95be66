"""Intervention scheduler: the two automatic trigger paths.

- Foreground: a one-shot follow-up a few seconds after a fresh analysis
  snapshot. Re-arming for the same user replaces the pending follow-up.
- Background: a periodic sweep over all users, each sweep bounded by an
  execution budget. A sweep that runs out of budget is cancelled and
  recorded as `scheduler.failed`; the next sweep starts from scratch.

The manual "run now" path calls the controller directly. All three paths
share the controller's per-user guard.
"""

import asyncio
import logging
import uuid

from penny.services.intervention_controller import EvaluationResult, InterventionController

logger = logging.getLogger("penny.controller")


class InterventionScheduler:
    def __init__(
        self,
        controller: InterventionController,
        *,
        foreground_delay: float = 5.0,
        interval: float = 3600.0,
        budget: float = 25.0,
    ):
        self.controller = controller
        self.foreground_delay = foreground_delay
        self.interval = interval
        self.budget = budget
        self._pending: dict[uuid.UUID, asyncio.Task] = {}
        self._loop_task: asyncio.Task | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # --- Foreground ---

    def schedule_followup(self, user_id: uuid.UUID) -> asyncio.Task:
        """Arm the one-shot evaluation for a user, replacing any pending one."""
        previous = self._pending.pop(user_id, None)
        if previous is not None and not previous.done():
            previous.cancel()

        task = asyncio.create_task(self._followup(user_id), name=f"penny-followup-{user_id}")
        self._pending[user_id] = task
        task.add_done_callback(lambda t, uid=user_id: self._forget(uid, t))
        return task

    def _forget(self, user_id: uuid.UUID, task: asyncio.Task) -> None:
        if self._pending.get(user_id) is task:
            del self._pending[user_id]

    async def _followup(self, user_id: uuid.UUID) -> EvaluationResult:
        await asyncio.sleep(self.foreground_delay)
        return await self.controller.evaluate(user_id, trigger="foreground")

    @property
    def pending_followups(self) -> int:
        return len(self._pending)

    # --- Background ---

    async def run_background_sweep(self) -> list[EvaluationResult] | None:
        """One budgeted sweep. Returns None if the budget ran out."""
        try:
            results = await asyncio.wait_for(
                self.controller.evaluate_all(trigger="background"),
                timeout=self.budget,
            )
        except asyncio.TimeoutError:
            logger.warning("background sweep exceeded budget=%.1fs", self.budget)
            await self.controller.record_failure(
                None,
                "scheduler.failed",
                trigger="background",
                reason="budget_exceeded",
                budget_seconds=self.budget,
            )
            return None

        dispatched = sum(1 for r in results if r.intervention_id is not None)
        logger.info("background sweep users=%d dispatched=%d", len(results), dispatched)
        return results

    async def _run_periodic(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval)
            try:
                await self.run_background_sweep()
            except Exception:
                logger.exception("background sweep failed")

    def start(self) -> None:
        if self._running:
            logger.warning("Scheduler is already running")
            return
        self._running = True
        self._loop_task = asyncio.create_task(self._run_periodic(), name="penny-background-sweep")
        logger.info(
            "Scheduler started interval=%.0fs budget=%.1fs foreground_delay=%.1fs",
            self.interval,
            self.budget,
            self.foreground_delay,
        )

    async def stop(self) -> None:
        """Cancel the periodic loop and any pending follow-ups."""
        self._running = False
        tasks = [t for t in [self._loop_task, *self._pending.values()] if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._loop_task = None
        self._pending.clear()
        logger.info("Scheduler stopped")
