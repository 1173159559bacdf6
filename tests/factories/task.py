"""
Task factory for test data generation.
"""

import factory
from factory import fuzzy
from sqlalchemy.ext.asyncio import AsyncSession

from simplr.models.task import Task
from simplr.schemas.task import TaskCategory


class TaskFactory(factory.Factory):
    """
    Factory for Task model.

    Personal by default; pass team_id and is_team_task=True for team tasks.
    """

    class Meta:
        model = Task

    user_id = None  # Must be set
    title = factory.Faker("sentence", nb_words=4)
    description = factory.Faker("paragraph")
    category = fuzzy.FuzzyChoice([c.value for c in TaskCategory])
    completed = False
    checklist = None
    due_date = None
    reminder_enabled = False
    reminder_datetime = None
    reminder_sent = False
    team_id = None
    is_team_task = False
    assigned_to = None
    organization_id = None

    @classmethod
    async def create_async(
        cls,
        db_session: AsyncSession,
        **kwargs
    ) -> Task:
        """
        Create task in database asynchronously.

        Usage:
            task = await TaskFactory.create_async(
                db_session,
                user_id="user-1",
                title="Write report",
                completed=True
            )
        """
        if not kwargs.get("user_id"):
            raise ValueError("user_id is required for TaskFactory")

        instance = cls.build(**kwargs)
        db_session.add(instance)
        await db_session.flush()
        return instance
