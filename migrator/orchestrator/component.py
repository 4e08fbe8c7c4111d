"""
Component lifecycle base

ContextAwareComponent gives planners, executors and agents an explicit
initialize / execute / cleanup lifecycle bound to one WorkflowContext.
Event subscriptions made through subscribe() are removed on cleanup().
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

from migrator.utils.logging_config import log_agent
from .events import EventHandler, EventKind
from .state import WorkflowContext


class ContextAwareComponent:
    """Base class for every component that works against a WorkflowContext."""

    def __init__(self, name: str, context: WorkflowContext, options: Optional[Mapping[str, Any]] = None):
        self.name = name
        self.context = context
        self.options: Dict[str, Any] = dict(options or {})
        self.is_initialized = False
        self.status = "idle"
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.result: Any = None
        self.error: Optional[BaseException] = None
        self._unsubscribers: List[Callable[[], None]] = []

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self):
        if self.is_initialized:
            return
        try:
            await self.on_initialize()
        except Exception as e:
            self.log_error("Initialization failed", e)
            raise
        self.is_initialized = True
        self.log("Initialized")

    async def on_initialize(self):
        """Component-specific setup."""

    async def execute(self) -> Any:
        if not self.is_initialized:
            await self.initialize()

        self._set_status("running")
        self.start_time = time.time()
        self.end_time = None
        self.error = None
        try:
            result = await self.on_execute()
        except Exception as e:
            self.end_time = time.time()
            self.error = e
            self._set_status("failed")
            self.log_error("Execution failed", e)
            raise

        self.end_time = time.time()
        self.result = result
        self._set_status("completed")
        self.log(f"Execution completed in {self.get_duration():.0f}ms")
        return result

    async def on_execute(self) -> Any:
        raise NotImplementedError(f"{type(self).__name__} must implement on_execute()")

    def cleanup(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self.on_cleanup()
        self.log("Cleaned up")

    def on_cleanup(self):
        """Component-specific teardown."""

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def subscribe(self, kind: EventKind, handler: EventHandler):
        """Subscribe on the context channel; removed again by cleanup()."""
        self._unsubscribers.append(self.context.events.subscribe(kind, handler))

    def publish(self, kind: EventKind, **payload):
        return self.context.events.publish(kind, component=self.name, **payload)

    def _set_status(self, status: str):
        self.status = status
        self.publish(EventKind.COMPONENT_STATUS, status=status)

    # -------------------------------------------------------------------------
    # Logging helpers (errors and warnings are also recorded on the context)
    # -------------------------------------------------------------------------

    def log(self, message: str, level: str = "INFO"):
        if level == "INFO" and not self.is_verbose():
            level = "DEBUG"
        log_agent(f"[{self.name}] {message}", level)

    def log_error(self, message: str, error: BaseException):
        log_agent(f"[{self.name}] {message}: {error}", "ERROR")
        self.context.add_error(f"{message}: {error}", origin=self.name)

    def log_warning(self, message: str):
        log_agent(f"[{self.name}] {message}", "WARNING")
        self.context.add_warning(message, origin=self.name)

    def report_progress(self, progress: float, message: Optional[str] = None) -> float:
        """
        Publish progress within this component's own work, clamped to 0..100.

        Run-wide stats.progress belongs to the orchestrator and is left alone.
        """
        value = max(0.0, min(100.0, float(progress)))
        self.context.events.publish(EventKind.COMPONENT_PROGRESS, component=self.name,
                                    progress=value, message=message)
        if message:
            self.log(f"Progress {value:.0f}%: {message}")
        return value

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def get_duration(self) -> float:
        """Elapsed time of the last execute() in ms."""
        if not self.start_time:
            return 0.0
        end = self.end_time or time.time()
        return (end - self.start_time) * 1000

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.get_duration(),
            "error": str(self.error) if self.error else None,
        }

    def is_dry_run(self) -> bool:
        return self.options.get("dry_run") is True

    def is_verbose(self) -> bool:
        return self.options.get("verbose") is True

    async def delay(self, seconds: float):
        await asyncio.sleep(seconds)
