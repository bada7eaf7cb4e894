"""CRUD routers for the reference entities, one per collection."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from helpdesk.api.dependencies import entity_repository
from helpdesk.entities import EntityRepository
from helpdesk.entities import schemas


def build_crud_router(
    collection: str,
    *,
    create_model: type[BaseModel],
    update_model: type[BaseModel],
    response_model: type[BaseModel],
    filter_model: type[BaseModel],
) -> APIRouter:
    """Expose list/get/create/update/delete for the repository named ``collection``."""

    router = APIRouter(prefix=f"/{collection}", tags=[collection])
    RepositoryDep = Annotated[EntityRepository, Depends(entity_repository(collection))]
    FilterDep = Annotated[filter_model, Depends()]

    @router.get("", response_model=list[response_model])
    async def list_entities(repository: RepositoryDep, filters: FilterDep):
        rows = await repository.list(filters.model_dump(mode="json", exclude_none=True))
        return [response_model.model_validate(row) for row in rows]

    @router.get("/{entity_id}", response_model=response_model)
    async def get_entity(entity_id: str, repository: RepositoryDep):
        return response_model.model_validate(await repository.get(entity_id))

    @router.post("", response_model=response_model, status_code=status.HTTP_201_CREATED)
    async def create_entity(payload: create_model, repository: RepositoryDep):
        row = await repository.create(payload.model_dump(mode="json"))
        return response_model.model_validate(row)

    @router.patch("/{entity_id}", response_model=response_model)
    async def update_entity(entity_id: str, payload: update_model, repository: RepositoryDep):
        row = await repository.update(entity_id, payload.model_dump(mode="json", exclude_unset=True))
        return response_model.model_validate(row)

    @router.delete("/{entity_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_entity(entity_id: str, repository: RepositoryDep) -> None:
        await repository.delete(entity_id)

    return router


routers = [
    build_crud_router(
        "departments",
        create_model=schemas.DepartmentCreate,
        update_model=schemas.DepartmentUpdate,
        response_model=schemas.DepartmentResponse,
        filter_model=schemas.DepartmentFilter,
    ),
    build_crud_router(
        "employees",
        create_model=schemas.EmployeeCreate,
        update_model=schemas.EmployeeUpdate,
        response_model=schemas.EmployeeResponse,
        filter_model=schemas.EmployeeFilter,
    ),
    build_crud_router(
        "agents",
        create_model=schemas.AgentCreate,
        update_model=schemas.AgentUpdate,
        response_model=schemas.AgentResponse,
        filter_model=schemas.AgentFilter,
    ),
    build_crud_router(
        "categories",
        create_model=schemas.CategoryCreate,
        update_model=schemas.CategoryUpdate,
        response_model=schemas.CategoryResponse,
        filter_model=schemas.CategoryFilter,
    ),
    build_crud_router(
        "comments",
        create_model=schemas.CommentCreate,
        update_model=schemas.CommentUpdate,
        response_model=schemas.CommentResponse,
        filter_model=schemas.CommentFilter,
    ),
    build_crud_router(
        "attachments",
        create_model=schemas.AttachmentCreate,
        update_model=schemas.AttachmentUpdate,
        response_model=schemas.AttachmentResponse,
        filter_model=schemas.AttachmentFilter,
    ),
]
