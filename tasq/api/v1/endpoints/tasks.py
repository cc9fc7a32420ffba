from fastapi import APIRouter, Depends

from tasq.schemas.notification import TaskAssignmentResponse
from tasq.services.task_assignment import TaskAssignmentService
from tasq.repositories.task_repository import TaskRepository
from tasq.repositories.user_repository import UserRepository
from tasq.api.deps import (
    get_task_assignment_service,
    get_task_repo,
    get_user_repo,
)

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.post(
    "/{task_id}/assign/{user_id}",
    response_model=TaskAssignmentResponse,
)
async def assign_task(
    task_id: int,
    user_id: int,
    service: TaskAssignmentService = Depends(get_task_assignment_service),
    task_repo: TaskRepository = Depends(get_task_repo),
    user_repo: UserRepository = Depends(get_user_repo),
) -> TaskAssignmentResponse:
    """Assign a task and push a real-time alert to the assignee.

    Business logic is delegated to :class:`TaskAssignmentService`.
    """
    result = await service.assign(
        task_id=task_id,
        user_id=user_id,
        task_repo=task_repo,
        user_repo=user_repo,
    )
    return TaskAssignmentResponse(**result)
