"""
RPC surface over the same resource service as the REST routes.

Every procedure is ``POST /rpc/{collection}/{procedure}`` with a JSON body:

- ``getAll``            ``{}``
- ``getById``           ``{"id": 1}``
- ``create``            the resource create payload
- ``update``            ``{"id": 1, "data": {...}}``
- ``delete``            ``{"id": 1}``
- ``getByTaskId``       ``{"taskId": 1}`` (comments only)

Errors are returned as ``{"code": ..., "message": ...}`` with a matching status.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from src.app.application.services import ResourceService
from src.app.domain.exceptions import InvalidReferenceError, ResourceNotFoundError
from src.app.domain.models import (
    CommentCreate,
    CommentUpdate,
    ProjectCreate,
    ProjectUpdate,
    ResourcePayload,
    ResourceType,
    TaskCreate,
    TaskUpdate,
)
from src.app.presentation.routes import get_resource_service

router = APIRouter(prefix="/rpc", tags=["rpc"])
logger = logging.getLogger(__name__)

_SCHEMAS: dict[ResourceType, tuple[type[ResourcePayload], type[ResourcePayload]]] = {
    ResourceType.PROJECT: (ProjectCreate, ProjectUpdate),
    ResourceType.TASK: (TaskCreate, TaskUpdate),
    ResourceType.COMMENT: (CommentCreate, CommentUpdate),
}


class RpcError(Exception):
    def __init__(self, status_code: int, code: str, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


class IdInput(BaseModel):
    id: int


class TaskIdInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    task_id: int


def _error(exc: RpcError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "message": exc.message},
    )


def _parse(model: type[BaseModel], data: Any) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise RpcError(400, "BAD_REQUEST", "Input validation failed") from exc


async def _read_input(request: Request) -> Any:
    body = await request.body()
    if not body:
        return {}
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise RpcError(400, "BAD_REQUEST", "Request body is not valid JSON") from exc


def _dump(record: BaseModel) -> dict[str, Any]:
    return record.model_dump(mode="json", by_alias=True)


async def _call(
    service: ResourceService, resource: ResourceType, procedure: str, data: Any
) -> Any:
    create_schema, update_schema = _SCHEMAS[resource]

    if procedure == "getAll":
        return [_dump(record) for record in await service.list(resource)]
    if procedure == "getById":
        target = _parse(IdInput, data)
        return _dump(await service.get(resource, target.id))
    if procedure == "create":
        return _dump(await service.create(resource, _parse(create_schema, data)))
    if procedure == "update":
        target = _parse(IdInput, data)
        changes = _parse(update_schema, data.get("data") if isinstance(data, dict) else None)
        return _dump(await service.update(resource, target.id, changes))
    if procedure == "delete":
        target = _parse(IdInput, data)
        return _dump(await service.delete(resource, target.id))
    if procedure == "getByTaskId" and resource == ResourceType.COMMENT:
        target = _parse(TaskIdInput, data)
        return [_dump(record) for record in await service.list_comments_for_task(target.task_id)]
    raise RpcError(404, "NOT_FOUND", f"Unknown procedure '{resource.collection}.{procedure}'")


@router.post("/{collection}/{procedure}")
async def call_procedure(
    collection: str,
    procedure: str,
    request: Request,
    service: ResourceService = Depends(get_resource_service),
):
    try:
        resource = ResourceType.from_collection(collection)
    except ValueError:
        return _error(RpcError(404, "NOT_FOUND", f"Unknown router '{collection}'"))

    try:
        data = await _read_input(request)
        return await _call(service, resource, procedure, data)
    except RpcError as exc:
        logger.info(
            "RPC call rejected",
            extra={"procedure": f"{collection}.{procedure}", "code": exc.code},
        )
        return _error(exc)
    except ResourceNotFoundError as exc:
        return _error(RpcError(404, "NOT_FOUND", str(exc)))
    except InvalidReferenceError as exc:
        return _error(RpcError(400, "BAD_REQUEST", str(exc)))
