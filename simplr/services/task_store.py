"""
Task persistence behind a small async interface.

The reconciler and the endpoints only talk to TaskStore; SQLAlchemyTaskStore
is the implementation backed by the application database. Personal
operations are scoped by user_id, team operations by team_id.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from simplr.core.exceptions import NotFoundError, RemoteStoreError
from simplr.models.task import Task
from simplr.schemas.task import TaskCreate, TaskOut
from simplr.logging import get_logger

logger = get_logger(__name__)

# Fields a caller may change after creation; team membership of a task is fixed
UPDATABLE_FIELDS = frozenset({
    "title",
    "description",
    "category",
    "completed",
    "checklist",
    "due_date",
    "reminder_enabled",
    "reminder_datetime",
    "reminder_sent",
    "assigned_to",
})


def _column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    values = {}
    for key, value in fields.items():
        if isinstance(value, Enum):
            value = value.value
        values[key] = value
    return values


class TaskStore(ABC):
    """Remote task collection as seen by one session"""

    @abstractmethod
    async def list_tasks(self, user_id: str) -> List[TaskOut]:
        ...

    @abstractmethod
    async def create_task(self, data: TaskCreate, user_id: str) -> TaskOut:
        ...

    @abstractmethod
    async def update_task(self, task_id: int, fields: Dict[str, Any], user_id: str) -> TaskOut:
        ...

    @abstractmethod
    async def delete_task(self, task_id: int, user_id: str) -> None:
        ...


class SQLAlchemyTaskStore(TaskStore):
    """TaskStore over an AsyncSession; commits after every write"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _run(self, description: str, operation):
        try:
            return await operation()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to {description}", error=str(e))
            raise RemoteStoreError(f"Failed to {description}") from e

    async def _fetch_row(self, task_id: int, **scope: Any) -> Task:
        query = select(Task).filter(Task.id == task_id)
        for column, value in scope.items():
            query = query.filter(getattr(Task, column) == value)
        result = await self.db.execute(query)
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError("Task not found")
        return row

    async def _apply_update(self, row: Task, fields: Dict[str, Any]) -> TaskOut:
        for key, value in _column_values(fields).items():
            if key in UPDATABLE_FIELDS:
                setattr(row, key, value)
        row.updated_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(row)
        return TaskOut.model_validate(row)

    async def _insert(self, data: TaskCreate, user_id: str, **overrides: Any) -> TaskOut:
        values = _column_values(data.model_dump())
        values.update(overrides)
        row = Task(user_id=user_id, **values)
        self.db.add(row)
        await self.db.commit()
        await self.db.refresh(row)
        return TaskOut.model_validate(row)

    # ==================== Personal scope ====================

    async def list_tasks(self, user_id: str) -> List[TaskOut]:
        async def operation():
            result = await self.db.execute(
                select(Task)
                .filter(Task.user_id == user_id)
                .order_by(Task.created_at.desc(), Task.id.desc())
            )
            return [TaskOut.model_validate(row) for row in result.scalars().all()]

        return await self._run("fetch tasks", operation)

    async def get_task(self, task_id: int, user_id: str) -> TaskOut:
        async def operation():
            return TaskOut.model_validate(await self._fetch_row(task_id, user_id=user_id))

        return await self._run("fetch task", operation)

    async def create_task(self, data: TaskCreate, user_id: str) -> TaskOut:
        if data.team_id is not None:
            return await self.create_team_task(data, data.team_id, user_id)
        return await self._run("create task", lambda: self._insert(data, user_id))

    async def update_task(self, task_id: int, fields: Dict[str, Any], user_id: str) -> TaskOut:
        async def operation():
            row = await self._fetch_row(task_id, user_id=user_id)
            return await self._apply_update(row, fields)

        return await self._run("update task", operation)

    async def delete_task(self, task_id: int, user_id: str) -> None:
        async def operation():
            row = await self._fetch_row(task_id, user_id=user_id)
            await self.db.delete(row)
            await self.db.commit()

        await self._run("delete task", operation)

    async def delete_completed(self, user_id: str) -> int:
        async def operation():
            result = await self.db.execute(
                delete(Task).where(Task.user_id == user_id, Task.completed.is_(True))
            )
            await self.db.commit()
            return result.rowcount or 0

        return await self._run("delete completed tasks", operation)

    # ==================== Team scope ====================

    async def list_team_tasks(self, team_id: str) -> List[TaskOut]:
        async def operation():
            result = await self.db.execute(
                select(Task)
                .filter(Task.team_id == team_id)
                .order_by(Task.created_at.desc(), Task.id.desc())
            )
            return [TaskOut.model_validate(row) for row in result.scalars().all()]

        return await self._run("fetch team tasks", operation)

    async def get_team_task(self, task_id: int, team_id: str) -> TaskOut:
        async def operation():
            return TaskOut.model_validate(await self._fetch_row(task_id, team_id=team_id))

        return await self._run("fetch team task", operation)

    async def create_team_task(self, data: TaskCreate, team_id: str, user_id: str) -> TaskOut:
        return await self._run(
            "create team task",
            lambda: self._insert(data, user_id, team_id=team_id, is_team_task=True),
        )

    async def update_team_task(self, task_id: int, fields: Dict[str, Any], team_id: str) -> TaskOut:
        async def operation():
            row = await self._fetch_row(task_id, team_id=team_id)
            return await self._apply_update(row, fields)

        return await self._run("update team task", operation)

    async def delete_team_task(self, task_id: int, team_id: str) -> None:
        async def operation():
            row = await self._fetch_row(task_id, team_id=team_id)
            await self.db.delete(row)
            await self.db.commit()

        await self._run("delete team task", operation)

    # ==================== Organization scope ====================

    async def list_organization_tasks(self, organization_id: str) -> List[TaskOut]:
        async def operation():
            result = await self.db.execute(
                select(Task)
                .filter(Task.organization_id == organization_id)
                .order_by(Task.created_at.desc(), Task.id.desc())
            )
            return [TaskOut.model_validate(row) for row in result.scalars().all()]

        return await self._run("fetch organization tasks", operation)

    # ==================== Reminders ====================

    async def list_due_reminders(self, now: Optional[datetime] = None) -> List[Task]:
        now = now or datetime.now(timezone.utc)

        async def operation():
            result = await self.db.execute(
                select(Task).filter(
                    Task.reminder_enabled.is_(True),
                    Task.reminder_sent.is_(False),
                    Task.completed.is_(False),
                    Task.reminder_datetime.is_not(None),
                    Task.reminder_datetime <= now,
                )
            )
            return list(result.scalars().all())

        return await self._run("fetch due reminders", operation)

    async def mark_reminders_sent(self, rows: List[Task]) -> None:
        async def operation():
            for row in rows:
                row.reminder_sent = True
            await self.db.commit()

        await self._run("mark reminders sent", operation)
