"""
Task-level authorization on top of the permission engine.

Personal tasks are already scoped to their owner by the store; team tasks
are checked against the caller's role and assignment.
"""

from typing import Any, Dict

from simplr.core import permissions
from simplr.core.exceptions import PermissionDeniedError, ValidationError
from simplr.core.permissions import PermissionContext


def _task_ref(task: Any) -> permissions.TaskRef:
    # A task bound to a team is a team task whatever its flag says
    return permissions.TaskRef(
        is_team_task=bool(getattr(task, "is_team_task", False) or getattr(task, "team_id", None) is not None),
        assigned_to=getattr(task, "assigned_to", None),
    )


def _check_assignee(context: PermissionContext, assigned_to: Any) -> None:
    if assigned_to is not None and context.find_member(assigned_to) is None:
        raise ValidationError("Tasks can only be assigned to team members")


def authorize_task_create(context: PermissionContext, data: Any) -> None:
    if not permissions.can_create_tasks(context):
        raise PermissionDeniedError("You must be a team member to create team tasks")
    assigned_to = getattr(data, "assigned_to", None)
    if assigned_to is not None:
        if not permissions.has_role_or_higher(context.current_user_role, permissions.TeamRole.ADMIN):
            raise PermissionDeniedError("Only owners and admins can assign tasks")
        _check_assignee(context, assigned_to)


def authorize_task_update(context: PermissionContext, task: Any, fields: Dict[str, Any]) -> None:
    """
    Raises:
        ValidationError: If a personal task is given an assignee
        PermissionDeniedError: If the engine denies the change
    """
    ref = _task_ref(task)
    if not ref.is_team_task:
        if fields.get("assigned_to") is not None:
            raise ValidationError("Tasks without a team cannot have an assignee")
        return

    if set(fields) == {"completed"}:
        if not permissions.can_complete_task(context, ref):
            raise PermissionDeniedError("You can only complete tasks assigned to you")
    elif not permissions.can_edit_task(context, ref):
        raise PermissionDeniedError("You can only edit tasks assigned to you")

    if "assigned_to" in fields and fields["assigned_to"] != ref.assigned_to:
        if not permissions.can_assign_task(context, ref):
            raise PermissionDeniedError("Only owners and admins can assign tasks")
        _check_assignee(context, fields["assigned_to"])


def authorize_task_delete(context: PermissionContext, task: Any) -> None:
    if not permissions.can_delete_task(context, _task_ref(task)):
        raise PermissionDeniedError("You can only delete tasks assigned to you")
