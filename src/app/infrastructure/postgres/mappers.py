from __future__ import annotations

from typing import Any

from src.app.domain.models import Comment, Project, Resource, ResourceType, Task
from src.app.infrastructure.postgres.orm import CommentRow, ProjectRow, TaskRow


class OrmMapper:
    @staticmethod
    def to_project(row: ProjectRow) -> Project:
        return Project(
            id=row.id,
            name=row.name,
            description=row.description,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def to_task(row: TaskRow) -> Task:
        return Task(
            id=row.id,
            project_id=row.project_id,
            title=row.title,
            status=row.status,
            priority=row.priority,
            assignee_id=row.assignee_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def to_comment(row: CommentRow) -> Comment:
        return Comment(
            id=row.id,
            task_id=row.task_id,
            text=row.text,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def to_domain(resource: ResourceType, row: Any) -> Resource:
        if resource == ResourceType.PROJECT:
            return OrmMapper.to_project(row)
        if resource == ResourceType.TASK:
            return OrmMapper.to_task(row)
        return OrmMapper.to_comment(row)

    @staticmethod
    def apply_changes(row: Any, changes: dict[str, Any]) -> None:
        columns = row.__table__.columns
        for field, value in changes.items():
            column = columns.get(field)
            if column is None or column.primary_key:
                continue
            # Explicit nulls only land on nullable columns.
            if value is None and not column.nullable:
                continue
            setattr(row, field, value)
