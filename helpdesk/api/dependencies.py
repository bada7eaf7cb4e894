from __future__ import annotations

from typing import Annotated, Callable

from fastapi import Depends, HTTPException, Request

from helpdesk.entities import EntityRepository
from helpdesk.tickets import DashboardService, TicketService


async def get_ticket_service(request: Request) -> TicketService:
    service = getattr(request.app.state, "ticket_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return service


async def get_dashboard_service(request: Request) -> DashboardService:
    service = getattr(request.app.state, "dashboard_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Dashboard service is not configured")
    return service


def entity_repository(collection: str) -> Callable[[Request], EntityRepository]:
    """Dependency factory resolving the CRUD repository for ``collection``."""

    def dependency(request: Request) -> EntityRepository:
        repositories = getattr(request.app.state, "entity_repositories", None) or {}
        repository = repositories.get(collection)
        if repository is None:
            raise HTTPException(status_code=503, detail=f"Repository for {collection} is not configured")
        return repository

    return dependency


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
DashboardServiceDep = Annotated[DashboardService, Depends(get_dashboard_service)]
