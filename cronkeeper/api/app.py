"""FastAPI application exposing cron management and the trigger endpoint."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar
from uuid import uuid4

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from cronkeeper.api.schemas import (
    CronListView,
    CronStatusView,
    ErrorBody,
    ExecutionListView,
    ExecutionLogsView,
    ExecutionView,
    TriggerView,
)
from cronkeeper.cron.models import CronDescription
from cronkeeper.errors import (
    CronkeeperError,
    InvalidInputError,
    NotFoundError,
    TransientBackendError,
    UpstreamTimeoutError,
)
from cronkeeper.metrics import CONTENT_TYPE_LATEST, CronkeeperMetrics
from cronkeeper.queue.models import SCHEDULED_EVENT
from cronkeeper.queue.parsers import JSONParser, ParseError, parse_platform_event
from cronkeeper.service.lifecycle import CronService

logger = logging.getLogger(__name__)

T = TypeVar("T")

SNS_MESSAGE_TYPE_HEADER = "x-amz-sns-message-type"


def _log_json(level: int, event: str, **fields: object) -> None:
    if not logger.isEnabledFor(level):
        return
    payload = {"event": event, **fields}
    logger.log(level, "%s", json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str))


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorBody(code=code, message=message).model_dump())


async def confirm_subscription(url: str, transport: httpx.AsyncBaseTransport | None = None) -> None:
    """Complete an SNS subscription by fetching its SubscribeURL."""
    async with httpx.AsyncClient(transport=transport) as client:
        try:
            response = await client.get(url)
        except httpx.TransportError as exc:
            raise TransientBackendError(f"subscription confirmation failed: {exc.__class__.__name__}") from exc
    if response.status_code != 200:
        raise TransientBackendError(f"subscription confirmation returned status {response.status_code}")


def create_app(
    service: CronService,
    *,
    metrics: CronkeeperMetrics | None = None,
    request_timeout: float = 10.0,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create FastAPI app bound to a cron service."""

    app = FastAPI(title="cronkeeper")

    async def _deadline(operation: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=request_timeout)
        except asyncio.TimeoutError as exc:
            raise UpstreamTimeoutError(f"request exceeded {request_timeout}s deadline") from exc

    @app.middleware("http")
    async def _request_log_middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid4()))
        request.state.request_id = request_id
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        _log_json(
            logging.DEBUG,
            "api_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            request_id=request_id,
            duration_ms=round((time.perf_counter() - started) * 1000.0, 3),
        )
        return response

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(404, "NOT_FOUND", str(exc))

    @app.exception_handler(InvalidInputError)
    async def _invalid_input(request: Request, exc: InvalidInputError) -> JSONResponse:
        return _error_response(400, "INVALID_INPUT", str(exc))

    @app.exception_handler(ParseError)
    async def _parse_error(request: Request, exc: ParseError) -> JSONResponse:
        return _error_response(400, "INVALID_INPUT", str(exc))

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}" for error in exc.errors()
        )
        return _error_response(400, "INVALID_INPUT", f"Validation error: {problems}")

    @app.exception_handler(CronkeeperError)
    @app.exception_handler(Exception)
    async def _internal(request: Request, exc: Exception) -> JSONResponse:
        _log_json(
            logging.ERROR,
            "api_error",
            method=request.method,
            route=request.url.path,
            cron=request.path_params.get("name"),
            error_type=exc.__class__.__name__,
            error=str(exc),
        )
        return _error_response(500, "INTERNAL", "internal server error")

    @app.get("/status")
    async def health() -> Response:
        return Response(status_code=200)

    @app.get("/metrics")
    async def export_metrics() -> Response:
        if metrics is None:
            return Response(status_code=404)
        return Response(content=metrics.export(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/crons")
    async def list_crons() -> CronListView:
        return CronListView(crons=await _deadline(service.list_crons()))

    @app.post("/crons")
    async def create_cron(description: CronDescription) -> dict[str, str]:
        cron = await _deadline(service.create(description))
        return {"name": cron.name}

    @app.post("/crons/trigger")
    async def trigger(request: Request) -> Response:
        message_type = request.headers.get(SNS_MESSAGE_TYPE_HEADER, "")
        envelope = JSONParser().parse(await request.body())
        if message_type == "SubscriptionConfirmation":
            url = envelope.get("SubscribeURL")
            if not isinstance(url, str) or not url:
                raise InvalidInputError("subscription confirmation without SubscribeURL")
            await _deadline(confirm_subscription(url, http_transport))
            logger.info("trigger_subscription_confirmed topic=%s", envelope.get("TopicArn", ""))
            return Response(status_code=200)
        if message_type != "Notification":
            raise InvalidInputError(f"unsupported message type {message_type!r}")
        message = envelope.get("Message")
        if not isinstance(message, str):
            raise InvalidInputError("notification without Message")
        event = parse_platform_event(message)
        if event.detail_type != SCHEDULED_EVENT:
            raise InvalidInputError(f"unsupported detail-type {event.detail_type!r}")
        if len(event.resources) != 1:
            raise InvalidInputError(f"expected exactly one resource, got {len(event.resources)}")
        await _deadline(service.trigger_by_rule_arn(event.resources[0]))
        return Response(status_code=200)

    @app.get("/crons/executions/{execution_id}")
    async def execution_status(execution_id: str) -> ExecutionView:
        execution = await _deadline(service.execution_status(execution_id))
        return ExecutionView.from_execution(execution)

    @app.get("/crons/executions/{execution_id}/logs")
    async def execution_logs(
        execution_id: str,
        log_type: str = Query(default="stdout", alias="log-type"),
        limit: int = Query(default=100, ge=1, le=10_000),
    ) -> ExecutionLogsView:
        lines = await _deadline(service.execution_logs(execution_id, log_type, limit))
        return ExecutionLogsView(id=execution_id, log_type=log_type, lines=lines)

    @app.get("/crons/{name}")
    async def cron_status(name: str, executions: int = Query(default=10, ge=0, le=1000)) -> CronStatusView:
        status = await _deadline(service.status(name, executions))
        return CronStatusView.from_status(status)

    @app.delete("/crons/{name}")
    async def delete_cron(name: str) -> Response:
        await _deadline(service.delete(name))
        return Response(status_code=200)

    @app.get("/crons/{name}/executions")
    async def list_executions(name: str, limit: int = Query(default=10, ge=0, le=1000)) -> ExecutionListView:
        items = await _deadline(service.executions(name, limit))
        return ExecutionListView(executions=[ExecutionView.from_execution(item) for item in items])

    @app.post("/crons/{name}/executions")
    async def run_cron(name: str) -> TriggerView:
        result = await _deadline(service.trigger_by_name(name))
        return TriggerView(cron_name=result.cron_name, skipped=result.skipped, task_id=result.task_id)

    return app


