"""Client-side capture agent that hooks uncaught failures and relays them to the ingestion endpoint."""

import asyncio
import logging
import queue
import sys
import threading
import time
import traceback
from dataclasses import dataclass
from typing import Optional

import requests

from telemetry.config import PLACEHOLDER_DNS, AgentConfig
from telemetry.models import ErrorRecord, client_timestamp, record_to_payload, split_stack

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigIssue:
    severity: str
    message: str
    setting: str


def validate_agent_config(config: AgentConfig) -> list[ConfigIssue]:
    """Return the player settings that will stop playback from working."""
    issues = []
    if config.dns == PLACEHOLDER_DNS:
        issues.append(ConfigIssue(
            "WARNING",
            "DNS is set to default value. Please configure your IPTV provider URL.",
            "dns",
        ))
    if config.cors and config.dns == PLACEHOLDER_DNS:
        issues.append(ConfigIssue(
            "ERROR",
            "CORS is enabled but DNS is not configured. Player will not work.",
            "dns and cors",
        ))
    return issues


def describe_failure(error) -> tuple[str, tuple]:
    """Extract (message, stack lines) from whatever was raised or rejected."""
    if isinstance(error, BaseException):
        text = str(error)
        message = f"{type(error).__name__}: {text}" if text else type(error).__name__
        stack = ()
        if error.__traceback__ is not None:
            stack = split_stack(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        return message, stack
    if isinstance(error, dict) and error.get("message") is not None:
        return str(error["message"]), split_stack(error.get("stack"))
    text = str(error) if error is not None else ""
    return text or "Unknown error", ()


class CaptureAgent:
    """Builds error records and ships them from a daemon sender thread.

    ``report`` only enqueues; it never waits on the network and never
    raises. Transport failures are dropped.
    """

    def __init__(self, config: AgentConfig, transport=None):
        self._config = config
        self._transport = transport or requests.post
        self._queue: queue.Queue = queue.Queue(maxsize=config.queue_size)
        self._lock = threading.Lock()
        self._sender: Optional[threading.Thread] = None
        self._sent = 0
        self._failed = 0
        self._dropped = 0

        self._installed = False
        self._previous_excepthook = None
        self._hooked_loop = None
        self._previous_loop_handler = None

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def sent(self) -> int:
        with self._lock:
            return self._sent

    @property
    def failed(self) -> int:
        with self._lock:
            return self._failed

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    # --- Global hooks ---

    def install_global_handlers(self, loop=None):
        """Hook uncaught exceptions and unhandled asyncio task failures.

        Safe to call repeatedly: the excepthook is installed once per agent.
        The asyncio handler follows ``loop`` (or the running loop): calling
        again from a new loop, e.g. a second ``asyncio.run``, moves the hook
        there and gives the previous loop its old handler back.
        """
        with self._lock:
            if not self._installed:
                self._previous_excepthook = sys.excepthook
                sys.excepthook = self._excepthook
                self._installed = True

            if loop is None:
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    loop = None
            if loop is not None and loop is not self._hooked_loop:
                self._release_loop()
                self._previous_loop_handler = loop.get_exception_handler()
                loop.set_exception_handler(self._loop_exception_handler)
                self._hooked_loop = loop

    def uninstall_global_handlers(self):
        with self._lock:
            if self._installed and sys.excepthook == self._excepthook:
                sys.excepthook = self._previous_excepthook
            self._installed = False
            self._previous_excepthook = None
            self._release_loop()

    def _release_loop(self):
        if self._hooked_loop is not None and not self._hooked_loop.is_closed():
            self._hooked_loop.set_exception_handler(self._previous_loop_handler)
        self._hooked_loop = None
        self._previous_loop_handler = None

    def _excepthook(self, exc_type, exc_value, exc_tb):
        if exc_value is None:
            exc_value = exc_type()
        if exc_value.__traceback__ is None and exc_tb is not None:
            exc_value = exc_value.with_traceback(exc_tb)
        self.report(exc_value, source=_origin(exc_tb), context="Global Error Handler")
        # the interpreter is about to exit and will not wait for the daemon sender
        self.flush(timeout=self._config.timeout_seconds)
        previous = self._previous_excepthook or sys.__excepthook__
        previous(exc_type, exc_value, exc_tb)

    def _loop_exception_handler(self, loop, context):
        error = context.get("exception")
        if error is None:
            error = {"message": context.get("message", "Unhandled asyncio failure")}
        self.report(error, source="asyncio", context="Unhandled Task Failure")
        if self._previous_loop_handler is not None:
            self._previous_loop_handler(loop, context)
        else:
            loop.default_exception_handler(context)

    # --- Reporting ---

    def build_record(self, error, source=None, context=None) -> ErrorRecord:
        message, stack = describe_failure(error)
        return ErrorRecord(
            message=message,
            timestamp=client_timestamp(),
            source=source or "Unknown",
            context=context or "General",
            user_agent=self._config.user_agent,
            page_url=self._config.page_url,
            endpoint_dns=self._config.dns,
            cors_enabled=self._config.cors,
            https_enabled=self._config.https,
            stack_trace=stack,
        )

    def report(self, error, source=None, context=None) -> bool:
        """Queue a failure for delivery. Returns True if it was queued."""
        if not self._config.enabled:
            return False
        try:
            record = self.build_record(error, source, context)
            logger.error(
                "ERROR LOGGED [%s] source=%s context=%s message=%s",
                record.timestamp, record.source, record.context, record.message,
            )
            if self._config.debug_mode and record.stack_trace:
                logger.debug("Stack trace:\n%s", "\n".join(record.stack_trace))

            self._ensure_sender()
            self._queue.put_nowait(record_to_payload(record))
            return True
        except queue.Full:
            with self._lock:
                self._dropped += 1
            logger.warning("Report queue full, dropping error report")
        except Exception as exc:
            logger.debug("Could not build error report: %s", exc)
        return False

    def check_config(self) -> list[ConfigIssue]:
        """Log configuration problems and report a single summary if any are found."""
        issues = validate_agent_config(self._config)
        for issue in issues:
            logger.warning("%s: %s (setting: %s)", issue.severity, issue.message, issue.setting)
        if issues:
            self.report(
                {"message": f"{len(issues)} configuration issue(s) detected"},
                source="config",
                context="Configuration Validation",
            )
        elif self._config.debug_mode:
            logger.debug("Configuration validated successfully")
        return issues

    # --- Sender thread ---

    def _ensure_sender(self):
        with self._lock:
            if self._sender is None or not self._sender.is_alive():
                self._sender = threading.Thread(
                    target=self._sender_loop, name="telemetry-sender", daemon=True,
                )
                self._sender.start()

    def _sender_loop(self):
        while True:
            payload = self._queue.get()
            try:
                if payload is None:
                    return
                self._send(payload)
            finally:
                self._queue.task_done()

    def _send(self, payload: dict):
        try:
            response = self._transport(
                self._config.endpoint_url,
                json=payload,
                timeout=self._config.timeout_seconds,
            )
            response.raise_for_status()
        except Exception as exc:
            with self._lock:
                self._failed += 1
            if self._config.debug_mode:
                logger.debug("Could not send error to server logger: %s", exc)
            return
        with self._lock:
            self._sent += 1

    def flush(self, timeout: float = 5.0) -> bool:
        """Wait until every queued report has been attempted. Returns False on timeout."""
        deadline = time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def close(self, timeout: float = 5.0):
        """Drain queued reports, then stop the sender thread."""
        with self._lock:
            sender = self._sender
        if sender is None or not sender.is_alive():
            return
        try:
            self._queue.put(None, timeout=timeout)
        except queue.Full:
            logger.warning("Report queue still full, abandoning %d queued report(s)",
                           self._queue.qsize())
            return
        sender.join(timeout=timeout)


def _origin(exc_tb) -> str:
    """Filename of the innermost frame, the closest thing to the failing script."""
    if exc_tb is None:
        return "Unknown file"
    while exc_tb.tb_next is not None:
        exc_tb = exc_tb.tb_next
    return exc_tb.tb_frame.f_code.co_filename
