"""HTTP API routes — register on the node's aiohttp app.

Exposes the oracle's three state transitions and its read-only views:
  - POST /api/tasks          create a task
  - POST /api/responses      submit an aggregated response
  - POST /api/challenges     raise a challenge
  - GET  /api/tasks/{index}  committed digests and derived state
  - GET  /api/events         notification log
  - GET  /api/clock          current block
  - GET  /health
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable

from aiohttp import web

from attest_node.errors import (
    AlreadySuccessfullyChallenged,
    DuplicateResponse,
    OracleError,
    UnknownTask,
)
from attest_node.models.notification import NotificationType
from attest_node.models.proof import NonSignerStakesAndSignature
from attest_node.models.task import Task, TaskResponse, TaskResponseMetadata

logger = logging.getLogger(__name__)

_CONFLICT = (DuplicateResponse, AlreadySuccessfullyChallenged)


def _json_default(obj):
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _dumps(obj):
    return json.dumps(obj, default=_json_default)


def _error(status: int, error: str, detail: str, **extra: Any) -> web.Response:
    return web.json_response(
        {"status": "error", "error": error, "detail": detail, **extra},
        status=status,
        dumps=_dumps,
    )


async def _in_executor(fn: Callable[..., Any], *args: Any) -> Any:
    """Run a blocking protocol call in the default executor."""
    return await asyncio.get_event_loop().run_in_executor(None, lambda: fn(*args))


Handler = Callable[[web.Request], Awaitable[web.Response]]


def _protocol_call(handler: Handler) -> Handler:
    """Map malformed requests and protocol rejections to JSON errors."""

    async def wrapper(request: web.Request) -> web.Response:
        try:
            return await handler(request)
        except (ValueError, KeyError, TypeError) as e:
            logger.debug("Bad request to %s: %s", request.path, e)
            return _error(400, "BadRequest", f"invalid request: {e}")
        except UnknownTask as e:
            return _error(404, e.name, str(e), task_index=e.task_index, context=e.context)
        except _CONFLICT as e:
            return _error(409, e.name, str(e), task_index=e.task_index, context=e.context)
        except OracleError as e:
            return _error(400, e.name, str(e), task_index=e.task_index, context=e.context)

    return wrapper


def setup_routes(app: web.Application, node: Any) -> None:
    """Register oracle routes on *app*."""
    app["_attest_node"] = node
    app.router.add_get("/health", _health)
    app.router.add_get("/api/clock", _api_clock)
    app.router.add_post("/api/tasks", _protocol_call(_api_create_task))
    app.router.add_get("/api/tasks/{index}", _protocol_call(_api_get_task))
    app.router.add_post("/api/responses", _protocol_call(_api_submit_response))
    app.router.add_post("/api/challenges", _protocol_call(_api_raise_challenge))
    app.router.add_get("/api/events", _api_events)


async def _health(request: web.Request) -> web.Response:
    node = request.app["_attest_node"]
    return web.json_response({
        "status": "healthy",
        "block": node.clock.current_block,
        "tasks": node.manager.task_count,
    })


async def _api_clock(request: web.Request) -> web.Response:
    node = request.app["_attest_node"]
    return web.json_response({
        "block": node.clock.current_block,
        "response_window": node.manager.response_window,
        "challenge_window": node.manager.challenge_window,
    })


# ── Transitions ─────────────────────────────────────────────

async def _api_create_task(request: web.Request) -> web.Response:
    """POST /api/tasks {smart_wallet_address, owner_address, quorum_ids, threshold_percentage}"""
    node = request.app["_attest_node"]
    data = await request.json()
    index, task = await _in_executor(
        node.manager.create_task,
        data["smart_wallet_address"],
        data["owner_address"],
        [int(q) for q in data["quorum_ids"]],
        int(data["threshold_percentage"]),
    )
    return web.json_response({
        "status": "created",
        "task_index": index,
        "task": task.model_dump(mode="json"),
    })


async def _api_submit_response(request: web.Request) -> web.Response:
    """POST /api/responses {task, response, proof}"""
    node = request.app["_attest_node"]
    data = await request.json()
    task = Task.model_validate(data["task"])
    response = TaskResponse.model_validate(data["response"])
    proof = NonSignerStakesAndSignature.model_validate(data["proof"])

    metadata = await _in_executor(node.manager.submit_response, task, response, proof)
    return web.json_response({
        "status": "recorded",
        "task_index": response.reference_task_index,
        "metadata": metadata.model_dump(mode="json"),
    })


async def _api_raise_challenge(request: web.Request) -> web.Response:
    """POST /api/challenges {task, response, metadata, non_signer_pubkeys, challenger}"""
    node = request.app["_attest_node"]
    data = await request.json()
    task = Task.model_validate(data["task"])
    response = TaskResponse.model_validate(data["response"])
    metadata = TaskResponseMetadata.model_validate(data["metadata"])
    non_signers = [str(pk) for pk in data.get("non_signer_pubkeys", [])]
    challenger = str(data.get("challenger") or request.remote or "anonymous")

    result = await _in_executor(
        node.manager.raise_challenge, task, response, metadata, non_signers, challenger,
    )
    return web.json_response({
        "status": result.outcome.value,
        "task_index": result.task_index,
        "challenger": result.challenger,
        "non_signer_operators": result.non_signer_operators,
    })


# ── Views ───────────────────────────────────────────────────

async def _api_get_task(request: web.Request) -> web.Response:
    node = request.app["_attest_node"]
    index = int(request.match_info["index"])
    state = node.manager.task_state(index)
    return web.json_response({
        "task_index": index,
        "task_digest": node.manager.get_task_digest(index),
        "response_digest": node.manager.get_response_digest(index),
        "challenged": node.manager.is_successfully_challenged(index),
        "state": state.value,
    })


async def _api_events(request: web.Request) -> web.Response:
    """GET /api/events?since=0&limit=100&type=task_created"""
    node = request.app["_attest_node"]
    try:
        since = int(request.query.get("since", "0"))
        limit = int(request.query.get("limit", "100"))
        type_param = request.query.get("type")
        event_type = NotificationType(type_param) if type_param else None
    except ValueError as e:
        return _error(400, "BadRequest", str(e))

    events = node.manager.notifications(since=since, limit=limit, event_type=event_type)
    return web.json_response({
        "events": [e.model_dump(mode="json") for e in events],
        "count": len(events),
    }, dumps=_dumps)
