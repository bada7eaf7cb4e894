"""Database models and engine helpers."""

from .models import (
    AgentTable,
    AttachmentTable,
    AuditLogTable,
    CategoryTable,
    CommentTable,
    DepartmentTable,
    EmployeeTable,
    TicketSequenceTable,
    TicketTable,
)
from .session import create_engine, create_session_factory, ensure_schema

__all__ = [
    "AgentTable",
    "AttachmentTable",
    "AuditLogTable",
    "CategoryTable",
    "CommentTable",
    "DepartmentTable",
    "EmployeeTable",
    "TicketSequenceTable",
    "TicketTable",
    "create_engine",
    "create_session_factory",
    "ensure_schema",
]
