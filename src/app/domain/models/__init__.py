from pydantic import BaseModel

from src.app.domain.models.comment import Comment
from src.app.domain.models.payloads import (
    CommentCreate,
    CommentUpdate,
    ProjectCreate,
    ProjectUpdate,
    ResourcePayload,
    TaskCreate,
    TaskUpdate,
)
from src.app.domain.models.project import Project
from src.app.domain.models.resource_type import ResourceType
from src.app.domain.models.task import Task, TaskPriority, TaskStatus

Resource = Project | Task | Comment

RESOURCE_MODELS: dict[ResourceType, type[BaseModel]] = {
    ResourceType.PROJECT: Project,
    ResourceType.TASK: Task,
    ResourceType.COMMENT: Comment,
}


def model_for(resource: ResourceType) -> type[BaseModel]:
    return RESOURCE_MODELS[resource]


__all__ = [
    "Comment",
    "CommentCreate",
    "CommentUpdate",
    "Project",
    "ProjectCreate",
    "ProjectUpdate",
    "Resource",
    "ResourcePayload",
    "ResourceType",
    "RESOURCE_MODELS",
    "Task",
    "TaskCreate",
    "TaskPriority",
    "TaskStatus",
    "TaskUpdate",
    "model_for",
]
