"""
Per-request diagnostics: SQL statement counting and the access log.

Every HTTP response carries ``X-Response-Time-Ms`` and ``X-Query-Count``.
Requests slower than ``settings.SLOW_REQUEST_MS`` are logged at WARNING on
the ``blog_api.access`` logger, everything else at INFO.
"""
import logging
import time
from contextvars import ContextVar
from dataclasses import dataclass, field

from sqlalchemy import event
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from blog_api.config import settings

access_logger = logging.getLogger("blog_api.access")


@dataclass
class RequestStats:
    started: float = field(default_factory=time.perf_counter)
    queries: int = 0
    status_code: int = 500

    @property
    def elapsed_ms(self) -> float:
        return round((time.perf_counter() - self.started) * 1000, 2)


# None outside an HTTP request (scripts, migrations, service tests).
current_stats: ContextVar[RequestStats | None] = ContextVar("request_stats", default=None)


def _count_statement(conn, cursor, statement, parameters, context, executemany):
    stats = current_stats.get()
    if stats is not None:
        stats.queries += 1


def install_query_counter(engine) -> None:
    """
    Count every statement *engine* sends to the database, eager-load
    queries included, against the request that issued it.
    """
    sync_engine = engine.sync_engine
    if not event.contains(sync_engine, "before_cursor_execute", _count_statement):
        event.listen(sync_engine, "before_cursor_execute", _count_statement)


class RequestMetricsMiddleware:
    # Pure ASGI: the app runs in this task's context, so the stats object
    # it mutates is the one read back here.

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        stats = RequestStats()
        token = current_stats.set(stats)

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                stats.status_code = message["status"]
                headers = MutableHeaders(scope=message)
                headers.append("X-Response-Time-Ms", str(stats.elapsed_ms))
                headers.append("X-Query-Count", str(stats.queries))
            await send(message)

        try:
            await self.app(scope, receive, send_with_headers)
        finally:
            current_stats.reset(token)
            _log_request(scope, stats)


def _log_request(scope: Scope, stats: RequestStats) -> None:
    elapsed = stats.elapsed_ms
    level = logging.WARNING if elapsed >= settings.SLOW_REQUEST_MS else logging.INFO
    access_logger.log(
        level,
        "%s %s -> %d (%.2f ms, %d queries)",
        scope["method"], scope["path"], stats.status_code, elapsed, stats.queries,
    )
