"""REST API routes."""
import asyncio
import uuid
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from ..config import settings
from ..engine.context import ExecutionContext
from ..engine.dependencies import (
    GroupNotFoundError, NodeNotFoundError, group_run_scope, node_run_scope,
)
from ..engine.executor import (
    ExecutionResult, execute_from_node, execute_group, execute_workflow,
)
from ..engine.graph import Graph
from ..engine.session import (
    SessionBusyError, create_session, get_session, get_store, remove_session,
)
from ..engine.store import NodeConfigChanged
from ..engine.validator import GraphCycleError, check_connection, validate_and_sort, validate_graph
from ..models.schemas import (
    ConnectionCheckRequest, ConnectionCheckResponse, ExecuteRequest, ExecuteResponse,
    NodeConfigUpdate, ValidateResponse, WorkflowDocument,
)
from ..nodes.base import SocketKind, is_socket_compatible
from ..nodes.registry import NodeRegistry
from ..utils.logger import get_logger
from .websocket import manager

logger = get_logger(__name__)

router = APIRouter(prefix="/api")

# Finished runs, capped at settings.max_results (oldest evicted first)
_results: dict[str, dict[str, Any]] = {}
_tasks: set[asyncio.Task] = set()


def _registry(request: Request) -> NodeRegistry:
    return request.app.state.registry


def _check_runnable(graph: Graph, mode: str, target_id: str | None) -> None:
    """Reject a run before it starts: missing target or cyclic scope."""
    scope = None
    if mode != "full":
        if not target_id:
            raise HTTPException(status_code=400, detail=f"target_id is required for mode '{mode}'")
        try:
            if mode == "node":
                scope, _ = node_run_scope(graph, target_id)
            else:
                scope, _ = group_run_scope(graph, target_id)
        except (NodeNotFoundError, GroupNotFoundError) as e:
            raise HTTPException(status_code=404, detail=e.args[0])
    if not graph.nodes:
        raise HTTPException(status_code=400, detail="Add some nodes before running")
    sort = validate_and_sort(graph, scope)
    if not sort.valid:
        raise HTTPException(status_code=400, detail=sort.error)


async def _dispatch(
    graph: Graph, registry: NodeRegistry, request: ExecuteRequest, context: ExecutionContext,
) -> ExecutionResult:
    if request.mode == "node":
        return await execute_from_node(graph, registry, request.target_id, context, force=request.force)
    if request.mode == "group":
        return await execute_group(graph, registry, request.target_id, context, force=request.force)
    return await execute_workflow(graph, registry, context)


def _store_result(execution_id: str, payload: dict[str, Any]) -> None:
    while _results and len(_results) >= settings.max_results:
        _results.pop(next(iter(_results)))
    _results[execution_id] = payload


@router.get("/nodes")
async def list_nodes(request: Request):
    """Return all registered node definitions."""
    return [d.to_dict() for d in _registry(request).all_definitions()]


@router.post("/connections/check", response_model=ConnectionCheckResponse)
async def check_connection_route(body: ConnectionCheckRequest, request: Request):
    """Check whether a proposed edge may be created."""
    if body.workflow is not None:
        if not all([body.source, body.source_socket, body.target, body.target_socket]):
            raise HTTPException(
                status_code=400,
                detail="source, source_socket, target and target_socket are required",
            )
        reason = check_connection(
            body.workflow.to_graph(), _registry(request),
            body.source, body.source_socket, body.target, body.target_socket,
        )
        return ConnectionCheckResponse(compatible=reason is None, reason=reason)

    try:
        source_kind = SocketKind(body.source_kind)
        target_kind = SocketKind(body.target_kind)
    except ValueError:
        raise HTTPException(status_code=400, detail="Unknown socket kind")
    if is_socket_compatible(source_kind, target_kind):
        return ConnectionCheckResponse(compatible=True)
    return ConnectionCheckResponse(
        compatible=False,
        reason=f"Cannot connect {source_kind.value} to {target_kind.value}",
    )


@router.post("/validate", response_model=ValidateResponse)
async def validate(document: WorkflowDocument, request: Request):
    graph = document.to_graph()
    errors = validate_graph(graph, _registry(request))
    sort = validate_and_sort(graph)
    return ValidateResponse(valid=not errors, errors=errors, order=sort.order)


@router.post("/execute", response_model=ExecuteResponse)
async def execute(body: ExecuteRequest, request: Request):
    """Run a workflow, or part of it.

    Without ``workflow`` the session's stored node state is run, so earlier
    outputs and config edits sent through the PATCH route carry over.
    Returns immediately with execution_id unless ``wait`` is set. Per-node
    status updates are delivered via WebSocket.
    """
    registry = _registry(request)
    if body.workflow is not None:
        graph = body.workflow.to_graph()
    elif body.session_id:
        graph = get_store(body.session_id).snapshot()
    else:
        raise HTTPException(status_code=400, detail="workflow or session_id is required")
    _check_runnable(graph, body.mode, body.target_id)

    session_id = body.session_id or str(uuid.uuid4())
    execution_id = str(uuid.uuid4())
    try:
        session = create_session(execution_id, session_id)
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))

    store = get_store(session_id)
    if body.workflow is not None:
        store.load(graph)
    loop = asyncio.get_running_loop()
    context = ExecutionContext(
        backend=body.backend or settings.default_backend,
        cancel_token=session.cancel_token,
        on_status=store.status_callback(
            manager.make_status_callback(session_id, execution_id, loop)
        ),
        generation=request.app.state.generation,
        compositor=request.app.state.compositor,
    )

    async def _run() -> dict[str, Any] | None:
        try:
            await manager.send_to_session(session_id, {
                "type": "execution_start", "execution_id": execution_id,
            })
            result = await _dispatch(store.snapshot(), registry, body, context)
            store.merge_result(result)
            payload = {
                "execution_id": execution_id,
                "session_id": session_id,
                "status": "cancelled" if result.cancelled else "complete",
                "result": result.to_dict(),
                "nodes": WorkflowDocument.from_graph(store.snapshot()).nodes,
            }
            _store_result(execution_id, payload)
            await manager.send_to_session(session_id, {
                "type": "execution_complete",
                "execution_id": execution_id,
                "completed_count": result.completed_count,
                "error_count": result.error_count,
                "skipped_count": result.skipped_count,
                "cancelled": result.cancelled,
            })
            return payload
        except Exception as e:
            logger.error(f"Execution {execution_id} failed: {e}", exc_info=True)
            await manager.send_to_session(session_id, {
                "type": "execution_error",
                "execution_id": execution_id,
                "error": str(e),
            })
            if body.wait:
                raise
            return None
        finally:
            remove_session(execution_id)

    if body.wait:
        try:
            payload = await _run()
        except GraphCycleError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return ExecuteResponse(**payload)

    task = asyncio.create_task(_run())
    _tasks.add(task)
    task.add_done_callback(_tasks.discard)
    return ExecuteResponse(execution_id=execution_id, session_id=session_id, status="started")


@router.post("/execute/{execution_id}/stop")
async def stop_execution(execution_id: str):
    session = get_session(execution_id)
    if not session:
        raise HTTPException(status_code=404, detail="Execution not found or already completed")
    session.cancel_token.cancel("Workflow stopped")
    return {"status": "stopping", "execution_id": execution_id}


@router.get("/results/{execution_id}")
async def get_results(execution_id: str):
    if execution_id not in _results:
        raise HTTPException(status_code=404, detail="Execution not found")
    return _results[execution_id]


@router.get("/sessions/{session_id}/workflow", response_model=WorkflowDocument)
async def get_session_workflow(session_id: str):
    return WorkflowDocument.from_graph(get_store(session_id).snapshot())


@router.patch("/sessions/{session_id}/nodes/{node_id}/config")
async def update_node_config(session_id: str, node_id: str, body: NodeConfigUpdate):
    """Deliver a node configuration change to the session's node store."""
    if not get_store(session_id).apply(NodeConfigChanged(node_id=node_id, config=body.config)):
        raise HTTPException(status_code=404, detail=f"Node not found: {node_id}")
    await manager.send_to_session(session_id, {
        "type": "node_config", "node_id": node_id, "config": body.config,
    })
    return {"node_id": node_id, "config": body.config}
