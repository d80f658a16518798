"""
Connection API routes.

- POST   /api/connections                                  - link a Teamwork account
- GET    /api/connections                                  - list linked accounts
- DELETE /api/connections/{id}                             - unlink an account
- GET    /api/connections/{id}/projects                    - projects of the account
- GET    /api/connections/{id}/projects/{pid}/taskLists    - all task lists of a project
- GET    /api/connections/{id}/tasks?taskListId=...        - task tree of a task list
- GET    /api/connections/{id}/tasks/{task_id}             - a single task
- PUT    /api/connections/{id}/tasks/{task_id}/estimation  - write an estimation (hours)

Teamwork errors are left to the app-level handler, which turns them into
401/502 responses carrying the client's fixed message.
"""

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import BaseModel, Field

from scopesync.core.api.repository import ConnectionRepository
from scopesync.core.connections.models import Connection, CreatedConnection
from scopesync.core.teamwork.client import TeamworkClient
from scopesync.core.teamwork.models import Project, Task, TaskList

router = APIRouter(prefix="/connections")


class CreateConnectionRequest(BaseModel):
    token: str = Field(..., min_length=1, description="Teamwork API token")


class EstimationRequest(BaseModel):
    hours: float = Field(
        ..., ge=0.0, allow_inf_nan=False, description="Estimated effort in hours"
    )


class ProjectsResponse(BaseModel):
    projects: list[Project]


class TaskListsResponse(BaseModel):
    taskLists: list[TaskList]


class TasksResponse(BaseModel):
    tasks: list[Task]


class TaskResponse(BaseModel):
    task: Task


class SuccessResponse(BaseModel):
    success: bool = True


def get_client(request: Request) -> TeamworkClient:
    return request.app.state.teamwork_client


def get_repository(request: Request) -> ConnectionRepository:
    return request.app.state.repository


@router.post("", response_model=CreatedConnection, status_code=status.HTTP_201_CREATED)
async def add_connection(
    body: CreateConnectionRequest,
    client: TeamworkClient = Depends(get_client),
    repository: ConnectionRepository = Depends(get_repository),
) -> CreatedConnection:
    """
    Validate a Teamwork token and store a connection for its account.

    The response carries the account details so the caller can ask the user
    to confirm it is the right account.
    """
    account = await client.validate_token(body.token)
    connection = repository.create(account, body.token)
    return CreatedConnection(id=connection.id, type=connection.type, external_data=account)


@router.get("", response_model=list[Connection])
async def list_connections(
    repository: ConnectionRepository = Depends(get_repository),
) -> list[Connection]:
    return repository.list_connections()


@router.delete("/{connection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_connection(
    connection_id: str,
    repository: ConnectionRepository = Depends(get_repository),
) -> Response:
    repository.delete(connection_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{connection_id}/projects", response_model=ProjectsResponse)
async def get_projects(
    connection_id: str,
    client: TeamworkClient = Depends(get_client),
    repository: ConnectionRepository = Depends(get_repository),
) -> ProjectsResponse:
    connection = repository.get(connection_id)
    token = repository.token(connection_id)
    projects = await client.get_projects(token, connection.base_url or None)
    return ProjectsResponse(projects=projects)


@router.get("/{connection_id}/projects/{project_id}/taskLists", response_model=TaskListsResponse)
async def get_task_lists(
    connection_id: str,
    project_id: str,
    client: TeamworkClient = Depends(get_client),
    repository: ConnectionRepository = Depends(get_repository),
) -> TaskListsResponse:
    token = repository.token(connection_id)
    task_lists = await client.get_all_task_lists(token, project_id)
    return TaskListsResponse(taskLists=task_lists)


@router.get("/{connection_id}/tasks", response_model=TasksResponse)
async def get_tasks(
    connection_id: str,
    task_list_id: str = Query(..., alias="taskListId", min_length=1),
    client: TeamworkClient = Depends(get_client),
    repository: ConnectionRepository = Depends(get_repository),
) -> TasksResponse:
    token = repository.token(connection_id)
    return TasksResponse(tasks=await client.get_tasks(token, task_list_id))


@router.get("/{connection_id}/tasks/{task_id}", response_model=TaskResponse)
async def get_task(
    connection_id: str,
    task_id: str,
    client: TeamworkClient = Depends(get_client),
    repository: ConnectionRepository = Depends(get_repository),
) -> TaskResponse:
    token = repository.token(connection_id)
    return TaskResponse(task=await client.get_task(token, task_id))


@router.put("/{connection_id}/tasks/{task_id}/estimation", response_model=SuccessResponse)
async def put_estimation(
    connection_id: str,
    task_id: str,
    body: EstimationRequest,
    client: TeamworkClient = Depends(get_client),
    repository: ConnectionRepository = Depends(get_repository),
) -> SuccessResponse:
    token = repository.token(connection_id)
    return SuccessResponse(success=await client.put_estimation(token, task_id, body.hours))
