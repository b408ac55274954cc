"""
credgate.audit.sink

Structured, failure-tolerant audit sink.

Responsibilities:
- Filter events to this application's namespace and event taxonomy.
- Render message templates and extract the target user (`U` parameter).
- Attach the caller-supplied actor/path context.
- Persist through an injected writer, swallowing and reporting write failures.
- Cache sink instances per source name.
"""

from __future__ import annotations

import threading
import traceback
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from credgate.audit.events import AuditLevel, EventCode, is_known_code
from credgate.audit.writer import AuditRecord, AuditWriter
from credgate.db.models import (
    MAX_EXCEPTION_LENGTH,
    MAX_PATH_LENGTH,
    MAX_SOURCE_LENGTH,
    MAX_USERNAME_LENGTH,
    utcnow,
)
from credgate.observability.logging import get_logger

log = get_logger(__name__)

TARGET_USER_PARAM = "U"


@dataclass(frozen=True, slots=True)
class AuditContext:
    """
    Who is acting and where. Passed explicitly by the caller; both fields are optional.
    """

    actor: str | None = None
    path: str | None = None


class _TemplateParams(dict):
    # Unknown holes stay literal instead of failing the render.
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render_message(template: str, params: Mapping[str, Any] | None) -> str:
    try:
        return template.format_map(_TemplateParams(params or {}))
    except (IndexError, ValueError, AttributeError):
        return template


def truncate(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    return value if len(value) <= limit else value[:limit]


def format_exception_text(exc: BaseException | None) -> str | None:
    if exc is None:
        return None
    text = "".join(traceback.format_exception(exc))
    return truncate(text, MAX_EXCEPTION_LENGTH)


class AuditSink:
    def __init__(self, source_name: str, *, writer: AuditWriter, namespace: str) -> None:
        self.source_name = source_name
        self._writer = writer
        self._namespace = namespace

    def is_enabled(self, event_code: int) -> bool:
        ns = self._namespace
        in_namespace = self.source_name == ns or self.source_name.startswith(ns + ".")
        return in_namespace and is_known_code(int(event_code))

    async def record(
        self,
        level: AuditLevel,
        event_code: EventCode | int,
        message_template: str,
        params: Mapping[str, Any] | None = None,
        *,
        exception: BaseException | None = None,
        context: AuditContext | None = None,
    ) -> None:
        """
        Persist one audit record. Never raises: filtered events are dropped silently
        and persistence failures are reported to the log side channel.
        """

        try:
            if not self.is_enabled(event_code):
                return

            ctx = context or AuditContext()
            target = None
            if params and TARGET_USER_PARAM in params and params[TARGET_USER_PARAM] is not None:
                target = str(params[TARGET_USER_PARAM])
            if target is None:
                target = ctx.actor

            record = AuditRecord(
                timestamp_utc=utcnow(),
                event_code=int(event_code),
                level=int(level),
                source_name=truncate(self.source_name, MAX_SOURCE_LENGTH) or "",
                message=render_message(message_template, params),
                exception_text=format_exception_text(exception),
                actor_username=truncate(ctx.actor, MAX_USERNAME_LENGTH),
                target_username=truncate(target, MAX_USERNAME_LENGTH),
                path=truncate(ctx.path, MAX_PATH_LENGTH),
            )
            await self._writer.write(record)
        except Exception as e:
            log.error(
                "audit_write_failed",
                source=self.source_name,
                event_code=int(event_code),
                error=str(e),
            )


class AuditSinkRegistry:
    """
    Per-source-name sink cache. Lookups may come from the request loop and from the
    bootstrap thread, so get-or-create is lock-guarded; entries are never removed.
    """

    def __init__(self, *, writer: AuditWriter, namespace: str) -> None:
        self._writer = writer
        self._namespace = namespace
        self._sinks: dict[str, AuditSink] = {}
        self._lock = threading.Lock()

    def get(self, source_name: str) -> AuditSink:
        sink = self._sinks.get(source_name)
        if sink is not None:
            return sink
        with self._lock:
            sink = self._sinks.get(source_name)
            if sink is None:
                sink = AuditSink(source_name, writer=self._writer, namespace=self._namespace)
                self._sinks[source_name] = sink
            return sink

    def __len__(self) -> int:
        return len(self._sinks)


# --- Module Notes -----------------------------------------------------------
# Source names are module paths (e.g. "credgate.services.authentication"), so the
# namespace filter matches the package prefix.
