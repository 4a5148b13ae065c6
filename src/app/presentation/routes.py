from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.app.application.services import ResourceService
from src.app.domain.exceptions import InvalidReferenceError, ResourceNotFoundError
from src.app.domain.models import (
    Comment,
    CommentCreate,
    CommentUpdate,
    Project,
    ProjectCreate,
    ProjectUpdate,
    Resource,
    ResourcePayload,
    ResourceType,
    Task,
    TaskCreate,
    TaskUpdate,
)

router = APIRouter()


def get_resource_service() -> ResourceService:
    return ResourceService()


async def _create(
    service: ResourceService, resource: ResourceType, payload: ResourcePayload
) -> Resource:
    try:
        return await service.create(resource, payload)
    except InvalidReferenceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


async def _get(service: ResourceService, resource: ResourceType, resource_id: int) -> Resource:
    try:
        return await service.get(resource, resource_id)
    except ResourceNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


async def _update(
    service: ResourceService,
    resource: ResourceType,
    resource_id: int,
    payload: ResourcePayload,
) -> Resource:
    try:
        return await service.update(resource, resource_id, payload)
    except ResourceNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidReferenceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


async def _delete(service: ResourceService, resource: ResourceType, resource_id: int) -> Resource:
    try:
        return await service.delete(resource, resource_id)
    except ResourceNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


# Projects

@router.get("/projects", response_model=list[Project], tags=["projects"])
async def list_projects(service: ResourceService = Depends(get_resource_service)):
    """Projects ordered by most recent change first."""
    return await service.list(ResourceType.PROJECT)


@router.get("/projects/{project_id}", response_model=Project, tags=["projects"])
async def get_project(project_id: int, service: ResourceService = Depends(get_resource_service)):
    return await _get(service, ResourceType.PROJECT, project_id)


@router.post(
    "/projects",
    response_model=Project,
    status_code=status.HTTP_201_CREATED,
    tags=["projects"],
    summary="Create a project",
    description="Creates a project and broadcasts `project:created` to connected clients.",
)
async def create_project(
    body: ProjectCreate, service: ResourceService = Depends(get_resource_service)
):
    return await _create(service, ResourceType.PROJECT, body)


@router.put("/projects/{project_id}", response_model=Project, tags=["projects"])
async def update_project(
    project_id: int,
    body: ProjectUpdate,
    service: ResourceService = Depends(get_resource_service),
):
    return await _update(service, ResourceType.PROJECT, project_id, body)


@router.delete("/projects/{project_id}", response_model=Project, tags=["projects"])
async def delete_project(
    project_id: int, service: ResourceService = Depends(get_resource_service)
):
    return await _delete(service, ResourceType.PROJECT, project_id)


# Tasks

@router.get("/tasks", response_model=list[Task], tags=["tasks"])
async def list_tasks(
    project_id: int | None = Query(default=None, alias="projectId"),
    service: ResourceService = Depends(get_resource_service),
):
    filters = {"project_id": project_id} if project_id is not None else None
    return await service.list(ResourceType.TASK, filters=filters)


@router.get("/tasks/{task_id}", response_model=Task, tags=["tasks"])
async def get_task(task_id: int, service: ResourceService = Depends(get_resource_service)):
    return await _get(service, ResourceType.TASK, task_id)


@router.post(
    "/tasks",
    response_model=Task,
    status_code=status.HTTP_201_CREATED,
    tags=["tasks"],
    summary="Create a task",
    description="Creates a task and broadcasts `task:created` to connected clients.",
)
async def create_task(body: TaskCreate, service: ResourceService = Depends(get_resource_service)):
    return await _create(service, ResourceType.TASK, body)


@router.put("/tasks/{task_id}", response_model=Task, tags=["tasks"])
async def update_task(
    task_id: int, body: TaskUpdate, service: ResourceService = Depends(get_resource_service)
):
    return await _update(service, ResourceType.TASK, task_id, body)


@router.delete("/tasks/{task_id}", response_model=Task, tags=["tasks"])
async def delete_task(task_id: int, service: ResourceService = Depends(get_resource_service)):
    return await _delete(service, ResourceType.TASK, task_id)


# Comments

@router.get("/comments", response_model=list[Comment], tags=["comments"])
async def list_comments(service: ResourceService = Depends(get_resource_service)):
    return await service.list(ResourceType.COMMENT)


@router.get("/comments/task/{task_id}", response_model=list[Comment], tags=["comments"])
async def list_task_comments(
    task_id: int, service: ResourceService = Depends(get_resource_service)
):
    return await service.list_comments_for_task(task_id)


@router.get("/comments/{comment_id}", response_model=Comment, tags=["comments"])
async def get_comment(comment_id: int, service: ResourceService = Depends(get_resource_service)):
    return await _get(service, ResourceType.COMMENT, comment_id)


@router.post(
    "/comments",
    response_model=Comment,
    status_code=status.HTTP_201_CREATED,
    tags=["comments"],
)
async def create_comment(
    body: CommentCreate, service: ResourceService = Depends(get_resource_service)
):
    return await _create(service, ResourceType.COMMENT, body)


@router.put("/comments/{comment_id}", response_model=Comment, tags=["comments"])
async def update_comment(
    comment_id: int,
    body: CommentUpdate,
    service: ResourceService = Depends(get_resource_service),
):
    return await _update(service, ResourceType.COMMENT, comment_id, body)


@router.delete("/comments/{comment_id}", response_model=Comment, tags=["comments"])
async def delete_comment(
    comment_id: int, service: ResourceService = Depends(get_resource_service)
):
    return await _delete(service, ResourceType.COMMENT, comment_id)
