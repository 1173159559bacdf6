"""
Integration tests for personal task operations.

Tests:
- GET /api/tasks/ - List tasks
- POST /api/tasks/ - Create task
- GET/PATCH/DELETE /api/tasks/{task_id}
- POST /api/tasks/{task_id}/toggle - Toggle completion
- DELETE /api/tasks/completed - Clear completed tasks
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from simplr.models.task import Task
from simplr.services.notifications import TaskChangeSubscription
from tests.factories import TaskFactory


@pytest.mark.asyncio
class TestListTasks:
    """Test GET /api/tasks/"""

    async def test_list_tasks_empty(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/tasks/", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == []

    async def test_list_only_own_tasks(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        user_id,
        auth_headers
    ):
        await TaskFactory.create_async(db_session, user_id=user_id, title="Mine")
        await TaskFactory.create_async(db_session, user_id="someone-else", title="Theirs")
        await db_session.commit()

        response = await client.get("/api/tasks/", headers=auth_headers)

        assert response.status_code == 200
        assert [t["title"] for t in response.json()] == ["Mine"]

    async def test_list_tasks_no_auth(self, client: AsyncClient):
        response = await client.get("/api/tasks/")

        assert response.status_code == 401

    async def test_list_tasks_invalid_token(self, client: AsyncClient):
        response = await client.get("/api/tasks/", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401


@pytest.mark.asyncio
class TestCreateTask:
    """Test POST /api/tasks/"""

    async def test_create_task_success(self, client: AsyncClient, user_id, auth_headers):
        response = await client.post(
            "/api/tasks/",
            headers=auth_headers,
            json={
                "title": "Write report",
                "category": "WORK",
                "checklist": [{"id": 1, "text": "Outline"}],
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "Write report"
        assert data["category"] == "WORK"
        assert data["user_id"] == user_id
        assert data["completed"] is False
        assert data["checklist"] == [{"id": 1, "text": "Outline", "done": False}]
        assert data["id"] is not None

    async def test_guest_can_create_tasks(self, client: AsyncClient, guest_id, guest_headers):
        response = await client.post("/api/tasks/", headers=guest_headers, json={"title": "Guest task"})

        assert response.status_code == 201
        assert response.json()["user_id"] == guest_id

    async def test_create_task_default_reminder(self, client: AsyncClient, auth_headers):
        due = datetime.now(timezone.utc) + timedelta(days=2)

        response = await client.post(
            "/api/tasks/",
            headers=auth_headers,
            json={"title": "Dentist", "due_date": due.isoformat(), "reminder_enabled": True},
        )

        assert response.status_code == 201
        reminder = datetime.fromisoformat(response.json()["reminder_datetime"])
        if reminder.tzinfo is None:
            reminder = reminder.replace(tzinfo=timezone.utc)
        assert abs((due - timedelta(hours=1)) - reminder) < timedelta(seconds=1)

    async def test_create_task_past_reminder(self, client: AsyncClient, auth_headers):
        past = datetime.now(timezone.utc) - timedelta(hours=1)

        response = await client.post(
            "/api/tasks/",
            headers=auth_headers,
            json={"title": "Too late", "reminder_enabled": True, "reminder_datetime": past.isoformat()},
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "Reminder time must be in the future"

    async def test_create_task_missing_title(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/tasks/", headers=auth_headers, json={"title": ""})

        assert response.status_code == 422

    async def test_create_personal_task_with_assignee(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/tasks/",
            headers=auth_headers,
            json={"title": "Task", "assigned_to": "user-2"},
        )

        assert response.status_code == 422

    async def test_create_team_task_as_outsider(self, client: AsyncClient, team, outsider_headers):
        response = await client.post(
            "/api/tasks/",
            headers=outsider_headers,
            json={"title": "Sneaky", "team_id": team.id},
        )

        assert response.status_code == 403

    async def test_create_team_task_as_member(self, client: AsyncClient, team, member_headers):
        response = await client.post(
            "/api/tasks/",
            headers=member_headers,
            json={"title": "Shared", "team_id": team.id},
        )

        assert response.status_code == 201
        assert response.json()["is_team_task"] is True
        assert response.json()["team_id"] == team.id

    async def test_create_task_notifies_owner(
        self,
        client: AsyncClient,
        redis_client,
        user_id,
        auth_headers
    ):
        async with TaskChangeSubscription(redis_client, user_id) as subscription:
            response = await client.post("/api/tasks/", headers=auth_headers, json={"title": "Ping"})
            event = await subscription.next_event(timeout=1.0)

        assert response.status_code == 201
        assert event["type"] == "tasks_changed"
        assert event["reason"] == "created"


@pytest.mark.asyncio
class TestUpdateTask:
    """Test GET/PATCH /api/tasks/{task_id} and toggle."""

    async def test_get_task(self, client: AsyncClient, db_session: AsyncSession, user_id, auth_headers):
        task = await TaskFactory.create_async(db_session, user_id=user_id, title="Read book")
        await db_session.commit()

        response = await client.get(f"/api/tasks/{task.id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["title"] == "Read book"

    async def test_get_other_users_task(self, client: AsyncClient, db_session: AsyncSession, auth_headers):
        task = await TaskFactory.create_async(db_session, user_id="someone-else")
        await db_session.commit()

        response = await client.get(f"/api/tasks/{task.id}", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Task not found"

    async def test_update_task_fields(self, client: AsyncClient, db_session: AsyncSession, user_id, auth_headers):
        task = await TaskFactory.create_async(db_session, user_id=user_id, title="Old", category="WORK")
        await db_session.commit()

        response = await client.patch(
            f"/api/tasks/{task.id}",
            headers=auth_headers,
            json={"title": "New", "description": None},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "New"
        assert data["description"] is None
        assert data["category"] == "WORK"

    async def test_update_personal_task_assignee(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        user_id,
        auth_headers
    ):
        task = await TaskFactory.create_async(db_session, user_id=user_id)
        await db_session.commit()

        response = await client.patch(
            f"/api/tasks/{task.id}",
            headers=auth_headers,
            json={"assigned_to": "user-2"},
        )

        assert response.status_code == 422

    async def test_update_missing_task(self, client: AsyncClient, auth_headers):
        response = await client.patch("/api/tasks/99999", headers=auth_headers, json={"title": "X"})

        assert response.status_code == 404

    async def test_toggle_task(self, client: AsyncClient, db_session: AsyncSession, user_id, auth_headers):
        task = await TaskFactory.create_async(db_session, user_id=user_id, completed=False)
        await db_session.commit()

        first = await client.post(f"/api/tasks/{task.id}/toggle", headers=auth_headers)
        second = await client.post(f"/api/tasks/{task.id}/toggle", headers=auth_headers)

        assert first.status_code == 200
        assert first.json()["completed"] is True
        assert second.json()["completed"] is False

    async def test_member_cannot_edit_own_unassigned_team_task(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        team,
        member_headers
    ):
        task = await TaskFactory.create_async(
            db_session, user_id="user-member", team_id=team.id, is_team_task=True
        )
        await db_session.commit()

        response = await client.patch(f"/api/tasks/{task.id}", headers=member_headers, json={"title": "Mine"})

        assert response.status_code == 403

    async def test_update_rejects_null_title(self, client: AsyncClient, db_session: AsyncSession, user_id, auth_headers):
        task = await TaskFactory.create_async(db_session, user_id=user_id, title="Keep me")
        await db_session.commit()

        response = await client.patch(f"/api/tasks/{task.id}", headers=auth_headers, json={"title": None})

        assert response.status_code == 422
        title = await db_session.execute(select(Task.title).filter(Task.id == task.id))
        assert title.scalar_one() == "Keep me"

    async def test_update_rejects_null_flags(self, client: AsyncClient, db_session: AsyncSession, user_id, auth_headers):
        task = await TaskFactory.create_async(db_session, user_id=user_id)
        await db_session.commit()

        for field in ("completed", "category", "reminder_enabled", "reminder_sent"):
            response = await client.patch(f"/api/tasks/{task.id}", headers=auth_headers, json={field: None})
            assert response.status_code == 422, field

    async def test_update_enabling_reminder_uses_default(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        user_id,
        auth_headers
    ):
        due = datetime.now(timezone.utc) + timedelta(days=2)
        task = await TaskFactory.create_async(db_session, user_id=user_id, due_date=due)
        await db_session.commit()

        response = await client.patch(f"/api/tasks/{task.id}", headers=auth_headers, json={"reminder_enabled": True})

        assert response.status_code == 200
        reminder = datetime.fromisoformat(response.json()["reminder_datetime"])
        if reminder.tzinfo is None:
            reminder = reminder.replace(tzinfo=timezone.utc)
        assert abs((due - timedelta(hours=1)) - reminder) < timedelta(seconds=1)
        assert response.json()["reminder_sent"] is False

    async def test_update_past_reminder(self, client: AsyncClient, db_session: AsyncSession, user_id, auth_headers):
        task = await TaskFactory.create_async(db_session, user_id=user_id)
        await db_session.commit()
        past = datetime.now(timezone.utc) - timedelta(hours=1)

        response = await client.patch(
            f"/api/tasks/{task.id}",
            headers=auth_headers,
            json={"reminder_enabled": True, "reminder_datetime": past.isoformat()},
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "Reminder time must be in the future"

    async def test_team_bound_task_without_flag_is_checked(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        team,
        member_headers
    ):
        task = await TaskFactory.create_async(
            db_session, user_id="user-member", team_id=team.id, is_team_task=False, assigned_to="user-admin"
        )
        await db_session.commit()

        edit = await client.patch(f"/api/tasks/{task.id}", headers=member_headers, json={"title": "Mine"})
        remove = await client.delete(f"/api/tasks/{task.id}", headers=member_headers)

        assert edit.status_code == 403
        assert remove.status_code == 403


@pytest.mark.asyncio
class TestDeleteTask:
    """Test DELETE /api/tasks/{task_id} and DELETE /api/tasks/completed."""

    async def test_delete_task(self, client: AsyncClient, db_session: AsyncSession, user_id, auth_headers):
        task = await TaskFactory.create_async(db_session, user_id=user_id)
        await db_session.commit()
        task_id = task.id

        response = await client.delete(f"/api/tasks/{task_id}", headers=auth_headers)

        assert response.status_code == 204
        follow_up = await client.get(f"/api/tasks/{task_id}", headers=auth_headers)
        assert follow_up.status_code == 404

    async def test_delete_other_users_task(self, client: AsyncClient, db_session: AsyncSession, auth_headers):
        task = await TaskFactory.create_async(db_session, user_id="someone-else")
        await db_session.commit()

        response = await client.delete(f"/api/tasks/{task.id}", headers=auth_headers)

        assert response.status_code == 404

    async def test_clear_completed(self, client: AsyncClient, db_session: AsyncSession, user_id, auth_headers):
        await TaskFactory.create_async(db_session, user_id=user_id, completed=True)
        await TaskFactory.create_async(db_session, user_id=user_id, completed=True)
        await TaskFactory.create_async(db_session, user_id=user_id, completed=False, title="Open")
        await TaskFactory.create_async(db_session, user_id="someone-else", completed=True)
        await db_session.commit()

        response = await client.delete("/api/tasks/completed", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"deleted": 2}

        remaining = await db_session.execute(select(Task.user_id, Task.completed))
        assert sorted(remaining.all()) == [("someone-else", True), (user_id, False)]
