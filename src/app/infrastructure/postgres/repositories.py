from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from src.app.domain.exceptions import InvalidReferenceError, ResourceNotFoundError
from src.app.domain.models import Comment, Resource, ResourceType
from src.app.domain.repositories import ResourceRepository
from src.app.infrastructure.postgres.mappers import OrmMapper
from src.app.infrastructure.postgres.orm import ROW_TYPES, CommentRow, PostgresOrm


class PostgresResourceRepository(ResourceRepository):
    """Postgres-backed resource storage using SQLAlchemy async sessions."""

    def __init__(self, orm: PostgresOrm) -> None:
        self._orm = orm

    async def list(
        self, resource: ResourceType, *, filters: dict[str, Any] | None = None
    ) -> list[Resource]:
        """List records, newest change first for projects and by id otherwise."""
        row_type = ROW_TYPES[resource]
        statement = select(row_type)
        for field, value in (filters or {}).items():
            statement = statement.where(getattr(row_type, field) == value)
        if resource == ResourceType.PROJECT:
            statement = statement.order_by(row_type.updated_at.desc())
        else:
            statement = statement.order_by(row_type.id)

        async with self._orm.session_factory() as session:
            result = await session.execute(statement)
            rows = result.scalars().all()
        return [OrmMapper.to_domain(resource, row) for row in rows]

    async def get(self, resource: ResourceType, resource_id: int) -> Resource:
        async with self._orm.session_factory() as session:
            row = await session.get(ROW_TYPES[resource], resource_id)
        if row is None:
            raise ResourceNotFoundError(resource, resource_id)
        return OrmMapper.to_domain(resource, row)

    async def create(self, resource: ResourceType, data: dict[str, Any]) -> Resource:
        """Insert a row and return it as persisted, server defaults included."""
        row = ROW_TYPES[resource](**data)
        try:
            async with self._orm.session_factory() as session:
                async with session.begin():
                    session.add(row)
                    await session.flush()
                    await session.refresh(row)
        except IntegrityError as exc:
            raise InvalidReferenceError(resource, str(exc.orig)) from exc
        return OrmMapper.to_domain(resource, row)

    async def update(
        self, resource: ResourceType, resource_id: int, changes: dict[str, Any]
    ) -> Resource:
        """Apply partial changes and bump ``updated_at``."""
        try:
            async with self._orm.session_factory() as session:
                async with session.begin():
                    row = await session.get(ROW_TYPES[resource], resource_id)
                    if row is None:
                        raise ResourceNotFoundError(resource, resource_id)
                    OrmMapper.apply_changes(row, changes)
                    row.updated_at = datetime.now(UTC)
                    await session.flush()
                    await session.refresh(row)
        except IntegrityError as exc:
            raise InvalidReferenceError(resource, str(exc.orig)) from exc
        return OrmMapper.to_domain(resource, row)

    async def delete(self, resource: ResourceType, resource_id: int) -> Resource:
        async with self._orm.session_factory() as session:
            async with session.begin():
                row = await session.get(ROW_TYPES[resource], resource_id)
                if row is None:
                    raise ResourceNotFoundError(resource, resource_id)
                deleted = OrmMapper.to_domain(resource, row)
                # Child rows go through ON DELETE CASCADE in the database.
                await session.delete(row)
        return deleted

    async def list_comments_for_task(self, task_id: int) -> list[Comment]:
        statement = select(CommentRow).where(CommentRow.task_id == task_id).order_by(CommentRow.id)
        async with self._orm.session_factory() as session:
            result = await session.execute(statement)
            rows = result.scalars().all()
        return [OrmMapper.to_comment(row) for row in rows]
