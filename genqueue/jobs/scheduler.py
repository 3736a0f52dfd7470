"""
Bounded-Concurrency Scheduler

Runs submitted task closures on the event loop with:
- A ceiling on simultaneously running closures
- A cap on starts per rolling time window
- Priority ordering of waiting closures (FIFO on ties)
- Pause/resume without dropping queued work

The scheduler does not look at task outcomes. Closures record their own
results (normally in the JobRegistry); an exception only frees the slot.
"""

import asyncio
import heapq
import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from genqueue.jobs.rate_limiter import IntervalRateLimiter

logger = logging.getLogger(__name__)

TaskFn = Callable[[], Awaitable[Any]]
IdleListener = Callable[[], Any]


class Scheduler:
    """
    Event-loop worker pool for task closures.

    Usage:
        scheduler = Scheduler(concurrency=5, interval=1.0, interval_cap=5)

        # Fire and forget; results are observed elsewhere
        scheduler.submit(lambda: run_task(job_id), priority=10)

        # Wait until nothing is queued or running
        await scheduler.on_idle()
    """

    def __init__(
        self,
        concurrency: int = 5,
        interval: float = 1.0,
        interval_cap: Optional[int] = None,
        name: str = 'scheduler',
        auto_start: bool = True
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.name = name
        self._concurrency = concurrency
        self._limiter = IntervalRateLimiter(
            interval=interval,
            interval_cap=interval_cap if interval_cap is not None else concurrency
        )

        # Ready set: (-priority, sequence, closure)
        self._ready: List[Tuple[int, int, TaskFn]] = []
        self._sequence = itertools.count()
        self._running: Set[asyncio.Task] = set()

        self._paused = not auto_start
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._idle_listeners: List[IdleListener] = []
        self._dispatcher: Optional[asyncio.Task] = None
        self._timers: Set[asyncio.Task] = set()
        self._closed = False

        # Metrics
        self._started_count = 0
        self._failed_count = 0
        self._start_time = datetime.now(timezone.utc)

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def size(self) -> int:
        """Number of closures queued but not started"""
        return len(self._ready)

    @property
    def pending(self) -> int:
        """Number of closures currently running"""
        return len(self._running)

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_idle(self) -> bool:
        return not self._ready and not self._running

    def submit(self, task_fn: TaskFn, priority: int = 0) -> None:
        """
        Queue a closure for execution.

        Must be called from a running event loop.

        Args:
            task_fn: Zero-argument callable returning an awaitable
            priority: Higher values start first when capacity frees up
        """
        if self._closed:
            logger.debug(f"[{self.name}] closed, task not queued")
            return

        self._ensure_dispatcher()
        heapq.heappush(self._ready, (-int(priority), next(self._sequence), task_fn))
        self._idle.clear()
        self._wakeup.set()
        logger.debug(f"[{self.name}] queued task (priority={priority}, queued={self.size})")

    def call_later(self, delay: float, task_fn: TaskFn, priority: int = 0) -> None:
        """
        Queue a closure after ``delay`` seconds.

        The wait does not hold a slot. Pending timers are cancelled by close().
        """
        if self._closed:
            return
        timer = asyncio.get_running_loop().create_task(self._submit_after(delay, task_fn, priority))
        self._timers.add(timer)
        timer.add_done_callback(self._timers.discard)

    def pause(self) -> None:
        """Stop starting new closures. Queued and running work is kept."""
        self._paused = True
        logger.info(f"[{self.name}] paused")

    def resume(self) -> None:
        """Allow closures to start again"""
        self._paused = False
        self._wakeup.set()
        logger.info(f"[{self.name}] resumed")

    def clear(self) -> int:
        """
        Drop queued closures that have not started.

        Returns:
            Number of closures dropped
        """
        count = len(self._ready)
        self._ready.clear()
        self._check_idle()
        logger.info(f"[{self.name}] cleared {count} queued tasks")
        return count

    def add_idle_listener(self, listener: IdleListener) -> None:
        """Register a callback invoked each time the scheduler becomes idle"""
        self._idle_listeners.append(listener)

    async def on_idle(self) -> None:
        """Wait until no closure is queued or running"""
        await self._idle.wait()

    async def close(self) -> None:
        """Stop the dispatcher and cancel running closures"""
        self._closed = True
        tasks = list(self._running) + list(self._timers)
        if self._dispatcher and not self._dispatcher.done():
            tasks.append(self._dispatcher)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._dispatcher = None
        self._ready.clear()
        self._timers.clear()
        self._check_idle()

    def get_stats(self) -> Dict[str, Any]:
        """Get scheduler statistics"""
        uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()
        return {
            'name': self.name,
            'queued': self.size,
            'running': self.pending,
            'concurrency_limit': self._concurrency,
            'paused': self._paused,
            'idle': self.is_idle,
            'started_count': self._started_count,
            'failed_count': self._failed_count,
            'delayed': len(self._timers),
            'closed': self._closed,
            'uptime_seconds': uptime,
            'rate_limit': self._limiter.get_usage(),
        }

    async def _submit_after(self, delay: float, task_fn: TaskFn, priority: int) -> None:
        await asyncio.sleep(delay)
        self.submit(task_fn, priority)

    def _ensure_dispatcher(self) -> None:
        if self._dispatcher is None or self._dispatcher.done():
            loop = asyncio.get_running_loop()
            self._dispatcher = loop.create_task(self._dispatch_loop())

    async def _dispatch_loop(self) -> None:
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()

            while self._can_start():
                await self._limiter.acquire()
                # State may have changed while waiting for the window
                if not self._can_start():
                    break
                _, _, task_fn = heapq.heappop(self._ready)
                self._start(task_fn)

    def _can_start(self) -> bool:
        return (
            not self._paused
            and bool(self._ready)
            and len(self._running) < self._concurrency
        )

    def _start(self, task_fn: TaskFn) -> None:
        task = asyncio.get_running_loop().create_task(self._run(task_fn))
        self._running.add(task)
        self._started_count += 1

    async def _run(self, task_fn: TaskFn) -> None:
        try:
            await task_fn()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._failed_count += 1
            logger.exception(f"[{self.name}] task raised: {e}")
        finally:
            task = asyncio.current_task()
            self._running.discard(task)
            self._wakeup.set()
            self._check_idle()

    def _check_idle(self) -> None:
        if not self.is_idle or self._idle.is_set():
            return
        self._idle.set()
        for listener in self._idle_listeners:
            try:
                listener()
            except Exception as e:
                logger.error(f"[{self.name}] idle listener failed: {e}")
