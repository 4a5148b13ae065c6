from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Task(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int = Field(description="Unique task identifier.")
    project_id: int = Field(description="Owning project.")
    title: str = Field(description="Short task title.")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="Workflow column.")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Task priority.")
    assignee_id: int | None = Field(default=None, description="Assigned user, if any.")
    created_at: datetime = Field(description="Creation timestamp.")
    updated_at: datetime = Field(description="Last modification timestamp.")
