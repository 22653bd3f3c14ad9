"""请求边界的输入模型。

DatabaseManager 的便捷方法接收字典输入，先经这里的 pydantic 模型校验，
校验失败在任何写入之前抛出 ValidationError。仓库层不再重复校验枚举取值。
"""
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar, Union

import pydantic
from pydantic import BaseModel, Field, field_validator

from config.business_config import business_config
from .errors import ValidationError

SchemaT = TypeVar("SchemaT", bound=BaseModel)

DateInput = Union[datetime, date, str]
EventStatus = Literal["draft", "active", "paused", "completed", "cancelled"]
SubtaskPriority = Literal["low", "medium", "high", "urgent"]
SubtaskStatus = Literal["pending", "in_progress", "completed", "cancelled"]
IssueStatus = Literal["OPEN", "IN_PROGRESS", "RESOLVED", "CLOSED"]


def _check_choice(value: Optional[str], choices: List[str], label: str) -> Optional[str]:
    if value is not None and value not in choices:
        raise ValueError(f"{label} must be one of: {', '.join(choices)}")
    return value


def _reject_null(value: Any) -> Any:
    # 部分更新时字段可以省略，但不能显式置空
    if value is None:
        raise ValueError("field cannot be null")
    return value


def validate(schema: Type[SchemaT], payload: Dict[str, Any]) -> SchemaT:
    """用输入模型校验字典。

    Raises:
        ValidationError: 校验失败，errors 为 ``字段: 原因`` 列表。
    """
    try:
        return schema.model_validate(payload)
    except pydantic.ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError(f"Invalid {schema.__name__}", errors) from e


# ================================================================
# 员工
# ================================================================

class EmployeeCreate(BaseModel):
    name: str = Field(min_length=1)
    employee_no: Optional[str] = None
    email: Optional[str] = Field(default=None, pattern=r"^\S+@\S+\.\S+$")
    phone: Optional[str] = None
    designation: Optional[str] = None
    role: str = "SALES_STAFF"
    circle: Optional[str] = None
    zone: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def _phone_has_ten_digits(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        digits = "".join(ch for ch in value if ch.isdigit())
        if len(digits) != 10:
            raise ValueError("Phone must be 10 digits")
        return digits

    @field_validator("circle")
    @classmethod
    def _known_circle(cls, value: Optional[str]) -> Optional[str]:
        return _check_choice(value, business_config.get_circles(), "circle")


# ================================================================
# 活动
# ================================================================

class EventCreate(BaseModel):
    name: str = Field(min_length=1)
    location: str = Field(min_length=1)
    circle: str
    zone: str = Field(min_length=1)
    start_date: DateInput
    end_date: DateInput
    category: str
    target_sim: int = Field(default=0, ge=0)
    target_ftth: int = Field(default=0, ge=0)
    allocated_sim: int = Field(default=0, ge=0)
    allocated_ftth: int = Field(default=0, ge=0)
    assigned_team: Optional[List[int]] = None
    key_insight: Optional[str] = None
    assigned_to: Optional[int] = None
    assigned_to_staff_id: Optional[str] = None
    created_by: int

    @field_validator("circle")
    @classmethod
    def _known_circle(cls, value: str) -> str:
        return _check_choice(value, business_config.get_circles(), "circle")

    @field_validator("category")
    @classmethod
    def _known_category(cls, value: str) -> str:
        return _check_choice(value, business_config.get_event_categories(), "category")


class EventUpdate(BaseModel):
    id: int
    updated_by: int
    name: Optional[str] = Field(default=None, min_length=1)
    location: Optional[str] = Field(default=None, min_length=1)
    circle: Optional[str] = None
    zone: Optional[str] = Field(default=None, min_length=1)
    start_date: Optional[DateInput] = None
    end_date: Optional[DateInput] = None
    category: Optional[str] = None
    target_sim: Optional[int] = Field(default=None, ge=0)
    target_ftth: Optional[int] = Field(default=None, ge=0)
    allocated_sim: Optional[int] = Field(default=None, ge=0)
    allocated_ftth: Optional[int] = Field(default=None, ge=0)
    key_insight: Optional[str] = None
    status: Optional[EventStatus] = None
    assigned_to: Optional[int] = None

    @field_validator(
        "name", "location", "circle", "zone", "start_date", "end_date",
        "category", "target_sim", "target_ftth", "allocated_sim",
        "allocated_ftth", "status", mode="before"
    )
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        return _reject_null(value)

    @field_validator("circle")
    @classmethod
    def _known_circle(cls, value: Optional[str]) -> Optional[str]:
        return _check_choice(value, business_config.get_circles(), "circle")

    @field_validator("category")
    @classmethod
    def _known_category(cls, value: Optional[str]) -> Optional[str]:
        return _check_choice(value, business_config.get_event_categories(), "category")


class EventStatusUpdate(BaseModel):
    event_id: int
    status: EventStatus
    updated_by: int


# ================================================================
# 成员分配与销售
# ================================================================

class AssignTeamInput(BaseModel):
    event_id: int
    employee_ids: List[int]
    assigned_by: int


class AssignTeamMemberInput(BaseModel):
    event_id: int
    employee_id: int
    sim_target: int = Field(ge=0)
    ftth_target: int = Field(ge=0)
    assigned_by: int


class RemoveTeamMemberInput(BaseModel):
    event_id: int
    employee_id: int
    removed_by: int


class UpdateTargetsInput(BaseModel):
    event_id: int
    employee_id: int
    sim_target: int = Field(ge=0)
    ftth_target: int = Field(ge=0)
    updated_by: int


class SalesPhoto(BaseModel):
    uri: str
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    timestamp: str


class SalesSubmission(BaseModel):
    event_id: int
    employee_id: int
    sims_sold: int = Field(ge=0)
    sims_activated: int = Field(ge=0)
    ftth_sold: int = Field(ge=0)
    ftth_activated: int = Field(ge=0)
    customer_type: str
    photos: Optional[List[SalesPhoto]] = None
    gps_latitude: Optional[str] = None
    gps_longitude: Optional[str] = None
    remarks: Optional[str] = None

    @field_validator("customer_type")
    @classmethod
    def _known_customer_type(cls, value: str) -> str:
        return _check_choice(value, business_config.get_customer_types(), "customer_type")


# ================================================================
# 子任务
# ================================================================

class SubtaskCreate(BaseModel):
    event_id: int
    title: str = Field(min_length=1)
    description: Optional[str] = None
    assigned_to: Optional[int] = None
    staff_id: Optional[str] = None
    priority: SubtaskPriority = "medium"
    due_date: Optional[DateInput] = None
    created_by: int


class SubtaskUpdate(BaseModel):
    subtask_id: int
    updated_by: int
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    assigned_to: Optional[int] = None
    status: Optional[SubtaskStatus] = None
    priority: Optional[SubtaskPriority] = None
    due_date: Optional[DateInput] = None

    @field_validator("title", "status", "priority", mode="before")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        return _reject_null(value)


# ================================================================
# 现场问题
# ================================================================

class IssueCreate(BaseModel):
    event_id: int
    raised_by: int
    type: str
    description: str = Field(min_length=1)
    escalated_to: Optional[int] = None

    @field_validator("type")
    @classmethod
    def _known_issue_type(cls, value: str) -> str:
        return _check_choice(value, business_config.get_issue_types(), "type")


class IssueStatusUpdate(BaseModel):
    id: int
    status: IssueStatus
    updated_by: int
    remarks: Optional[str] = None


class IssueEscalation(BaseModel):
    id: int
    escalated_to: int
    escalated_by: int
