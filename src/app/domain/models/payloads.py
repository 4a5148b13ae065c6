from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.app.domain.models.task import TaskPriority, TaskStatus


class ResourcePayload(BaseModel):
    """Base class for create/update inputs; accepts camelCase or snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class ProjectCreate(ResourcePayload):
    name: str = Field(min_length=1, description="Display name of the project.")
    description: str | None = Field(default=None, description="Optional free text.")


class ProjectUpdate(ProjectCreate):
    pass


class TaskCreate(ResourcePayload):
    project_id: int = Field(description="Owning project.")
    title: str = Field(min_length=1, description="Short task title.")
    status: TaskStatus = Field(default=TaskStatus.TODO)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    assignee_id: int | None = Field(default=None)


class TaskUpdate(ResourcePayload):
    project_id: int | None = None
    title: str | None = Field(default=None, min_length=1)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assignee_id: int | None = None


class CommentCreate(ResourcePayload):
    task_id: int = Field(description="Task the comment belongs to.")
    text: str = Field(min_length=1, description="Comment body.")


class CommentUpdate(ResourcePayload):
    text: str | None = Field(default=None, min_length=1)
