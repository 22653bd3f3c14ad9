"""SQLAlchemy ORM 模型定义。

本模块定义了所有数据库表的ORM模型，包括：
- 员工（员工目录）
- 推广活动、活动成员分配、销售录入、活动子任务
- 现场问题（含时间线）
- 审计日志、通知发件箱
"""
from typing import Dict, Any, List, Optional
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime,
    ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import relationship
from datetime import datetime

# SQLAlchemy declarative base，所有模型都继承自此类
# 设置 __allow_unmapped__ = True 以兼容 SQLAlchemy 2.0 的类型注解要求
Base = declarative_base()

Base.__allow_unmapped__ = True


class Employee(Base):
    """员工表模型。

    员工目录的存储，可按 ID 或人类可读的员工编号（employee_no）解析。

    Attributes:
        id: 主键，自增整数。
        name: 员工姓名，必填。
        employee_no: 员工编号（工号），唯一，可选。
        email: 邮箱，唯一，可选。
        phone: 电话，唯一，可选。
        designation: 职务名称，可选。
        role: 角色，默认 SALES_STAFF。
        circle: 所属业务圈。
        zone: 所属片区。
        is_active: 是否在职，默认True。
        extra_data: JSON扩展字段。
        created_at: 创建时间。
    """
    __tablename__ = "employees"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    name: str = Column(String(100), nullable=False)
    employee_no: Optional[str] = Column(String(50), unique=True)
    email: Optional[str] = Column(String(120), unique=True)
    phone: Optional[str] = Column(String(20), unique=True)
    designation: Optional[str] = Column(String(100))
    role: str = Column(String(30), default="SALES_STAFF")
    circle: Optional[str] = Column(String(50))
    zone: Optional[str] = Column(String(100))
    is_active: bool = Column(Boolean, default=True)
    extra_data: Dict[str, Any] = Column(JSON, default={})
    created_at: datetime = Column(DateTime, default=datetime.utcnow)


class Event(Base):
    """推广活动表模型。

    assigned_team 是 EventAssignment 关系的反规范化缓存（员工ID有序列表），
    两者之间只保证最终一致，不保证事务一致。

    Attributes:
        id: 主键，自增整数。
        name / location / circle / zone / category: 活动基本信息。
        start_date / end_date: 活动起止时间。
        target_sim / target_ftth: SIM 与 FTTH 目标。
        allocated_sim / allocated_ftth: SIM 与 FTTH 配额。
        key_insight: 备注洞察，可选。
        assigned_team: 已分配成员ID列表（JSON）。
        status: draft / active / paused / completed / cancelled / deleted。
        assigned_to: 活动负责人员工ID，可选。
        created_by: 创建人员工ID。
        created_at / updated_at: 时间戳。

    Relationships:
        assignments: 成员分配列表。
        subtasks: 子任务列表。
    """
    __tablename__ = "events"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    name: str = Column(String(200), nullable=False)
    location: str = Column(String(200), nullable=False)
    circle: str = Column(String(50), nullable=False)
    zone: str = Column(String(100), nullable=False)
    category: str = Column(String(50), nullable=False)
    start_date: datetime = Column(DateTime, nullable=False)
    end_date: datetime = Column(DateTime, nullable=False)
    target_sim: int = Column(Integer, default=0)
    target_ftth: int = Column(Integer, default=0)
    allocated_sim: int = Column(Integer, default=0)
    allocated_ftth: int = Column(Integer, default=0)
    key_insight: Optional[str] = Column(Text)
    assigned_team: List[int] = Column(JSON, default=list)
    status: str = Column(String(20), default="active")
    assigned_to: Optional[int] = Column(Integer, ForeignKey("employees.id"))
    created_by: Optional[int] = Column(Integer, ForeignKey("employees.id"))
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    assignments: List["EventAssignment"] = relationship(
        "EventAssignment", back_populates="event", cascade="all, delete-orphan"
    )
    subtasks: List["EventSubtask"] = relationship(
        "EventSubtask", back_populates="event", cascade="all, delete-orphan"
    )


class EventAssignment(Base):
    """活动成员分配表模型。

    每个（活动, 员工）唯一一条记录，保存个人目标以及累计销量。
    sim_sold / ftth_sold 只由销售录入增量累加，不做重算。

    Table Args:
        UniqueConstraint: (event_id, employee_id)唯一约束。
    """
    __tablename__ = "event_assignments"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    event_id: int = Column(Integer, ForeignKey("events.id"), nullable=False)
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False)
    sim_target: int = Column(Integer, default=0)
    ftth_target: int = Column(Integer, default=0)
    sim_sold: int = Column(Integer, default=0)
    ftth_sold: int = Column(Integer, default=0)
    assigned_by: Optional[int] = Column(Integer)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    event: "Event" = relationship("Event", back_populates="assignments")

    __table_args__ = (
        UniqueConstraint('event_id', 'employee_id', name='uq_event_assignment'),
    )


class EventSalesEntry(Base):
    """活动销售录入表模型。

    不可变事实记录，创建后不再修改。event_id / employee_id 为弱引用，
    不随活动或分配删除。
    """
    __tablename__ = "event_sales_entries"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    event_id: int = Column(Integer, nullable=False, index=True)
    employee_id: int = Column(Integer, nullable=False, index=True)
    sims_sold: int = Column(Integer, default=0)
    sims_activated: int = Column(Integer, default=0)
    ftth_sold: int = Column(Integer, default=0)
    ftth_activated: int = Column(Integer, default=0)
    customer_type: str = Column(String(20), nullable=False)  # B2C / B2B / Government / Enterprise
    photos: List[Dict[str, Any]] = Column(JSON, default=list)
    gps_latitude: Optional[str] = Column(String(30))
    gps_longitude: Optional[str] = Column(String(30))
    remarks: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)


class EventSubtask(Base):
    """活动子任务表模型。"""
    __tablename__ = "event_subtasks"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    event_id: int = Column(Integer, ForeignKey("events.id"), nullable=False)
    title: str = Column(String(200), nullable=False)
    description: Optional[str] = Column(Text)
    assigned_to: Optional[int] = Column(Integer, ForeignKey("employees.id"))
    priority: str = Column(String(10), default="medium")  # low / medium / high / urgent
    status: str = Column(String(20), default="pending")  # pending / in_progress / completed / cancelled
    due_date: Optional[datetime] = Column(DateTime)
    completed_at: Optional[datetime] = Column(DateTime)
    completed_by: Optional[int] = Column(Integer)
    created_by: Optional[int] = Column(Integer)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    event: "Event" = relationship("Event", back_populates="subtasks")


class Issue(Base):
    """现场问题表模型。

    timeline 为只追加的时间线，每一项为
    ``{"action": ..., "performed_by": ..., "timestamp": ...}``。
    resolved_by / resolved_at 仅在转入 RESOLVED 或 CLOSED 时写入。
    """
    __tablename__ = "issues"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    event_id: int = Column(Integer, ForeignKey("events.id"), nullable=False)
    raised_by: int = Column(Integer, nullable=False)
    type: str = Column(String(30), nullable=False)
    description: str = Column(Text, nullable=False)
    status: str = Column(String(20), default="OPEN")  # OPEN / IN_PROGRESS / RESOLVED / CLOSED
    escalated_to: Optional[int] = Column(Integer)
    timeline: List[Dict[str, Any]] = Column(JSON, default=list)
    resolved_by: Optional[int] = Column(Integer)
    resolved_at: Optional[datetime] = Column(DateTime)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AuditLog(Base):
    """审计日志表模型。

    不可变记录：动作、实体类型、实体ID、执行人与结构化详情。
    """
    __tablename__ = "audit_logs"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    action: str = Column(String(50), nullable=False)
    entity_type: str = Column(String(20), nullable=False)  # EVENT / SALES / ISSUE
    entity_id: int = Column(Integer, nullable=False)
    performed_by: Optional[int] = Column(Integer)
    details: Dict[str, Any] = Column(JSON, default={})
    created_at: datetime = Column(DateTime, default=datetime.utcnow)


class Notification(Base):
    """通知发件箱表模型。

    由默认通知分发器写入，推送投递由外部系统负责。
    """
    __tablename__ = "notifications"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    employee_id: int = Column(Integer, nullable=False, index=True)
    kind: str = Column(String(30), nullable=False)
    title: str = Column(String(200), nullable=False)
    body: str = Column(Text, nullable=False)
    context: Dict[str, Any] = Column(JSON, default={})
    is_read: bool = Column(Boolean, default=False)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
