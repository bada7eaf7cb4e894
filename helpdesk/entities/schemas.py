from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AgentRole(str, Enum):
    L1 = "L1"
    L2 = "L2"
    L3 = "L3"
    MANAGER = "MANAGER"


class _Response(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class DepartmentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None


class DepartmentFilter(BaseModel):
    name: str | None = None


class DepartmentResponse(_Response):
    id: str
    name: str
    description: str | None
    created_at: datetime


class EmployeeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    department_id: str | None = None


class EmployeeUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    department_id: str | None = None


class EmployeeFilter(BaseModel):
    department_id: str | None = None


class EmployeeResponse(_Response):
    id: str
    name: str
    email: str
    department_id: str | None
    created_at: datetime


class AgentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=50)
    role: AgentRole = AgentRole.L1
    is_active: bool = True
    department_id: str | None = None


class AgentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    role: AgentRole | None = None
    is_active: bool | None = None
    department_id: str | None = None


class AgentFilter(BaseModel):
    role: AgentRole | None = None
    is_active: bool | None = None
    department_id: str | None = None


class AgentResponse(_Response):
    id: str
    name: str
    email: str
    phone: str | None
    role: AgentRole
    is_active: bool
    department_id: str | None
    created_at: datetime


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    sla_hours: int | None = Field(default=None, gt=0)


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    sla_hours: int | None = Field(default=None, gt=0)


class CategoryFilter(BaseModel):
    name: str | None = None


class CategoryResponse(_Response):
    id: str
    name: str
    description: str | None
    sla_hours: int | None
    created_at: datetime


class CommentCreate(BaseModel):
    ticket_id: str
    content: str = Field(..., min_length=1)
    is_internal: bool = False
    author_name: str = Field(..., min_length=1, max_length=255)
    author_email: str = Field(default="", max_length=255)


class CommentUpdate(BaseModel):
    content: str | None = Field(default=None, min_length=1)
    is_internal: bool | None = None


class CommentFilter(BaseModel):
    ticket_id: str | None = None
    is_internal: bool | None = None


class CommentResponse(_Response):
    id: str
    ticket_id: str
    content: str
    is_internal: bool
    author_name: str
    author_email: str
    created_at: datetime


class AttachmentCreate(BaseModel):
    ticket_id: str
    file_name: str = Field(..., min_length=1, max_length=255)
    mime_type: str | None = Field(default=None, max_length=100)
    file_size: int | None = Field(default=None, ge=0)
    url: str | None = Field(default=None, max_length=1024)
    uploaded_by: str | None = Field(default=None, max_length=255)


class AttachmentUpdate(BaseModel):
    file_name: str | None = Field(default=None, min_length=1, max_length=255)
    mime_type: str | None = Field(default=None, max_length=100)
    url: str | None = Field(default=None, max_length=1024)


class AttachmentFilter(BaseModel):
    ticket_id: str | None = None


class AttachmentResponse(_Response):
    id: str
    ticket_id: str
    file_name: str
    mime_type: str | None
    file_size: int | None
    url: str | None
    uploaded_by: str | None
    created_at: datetime
