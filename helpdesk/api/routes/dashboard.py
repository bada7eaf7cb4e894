from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict

from helpdesk.api.dependencies import DashboardServiceDep
from helpdesk.api.routes.tickets import TicketResponse

router = APIRouter(tags=["reporting"])


class DashboardStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_tickets: int
    open_tickets: int
    in_progress_tickets: int
    resolved_today: int
    overdue_tickets: int
    critical_tickets: int


@router.get("/dashboard/stats", response_model=DashboardStatsResponse, summary="Ticket counters for the dashboard")
async def get_dashboard_stats(dashboard: DashboardServiceDep) -> DashboardStatsResponse:
    return DashboardStatsResponse.model_validate(await dashboard.get_dashboard_stats())


@router.get("/agents/{agent_id}/tickets", response_model=list[TicketResponse], summary="Open work for one agent")
async def get_agent_tickets(agent_id: str, dashboard: DashboardServiceDep) -> list[TicketResponse]:
    tickets = await dashboard.get_agent_tickets(agent_id)
    return [TicketResponse.model_validate(ticket) for ticket in tickets]
