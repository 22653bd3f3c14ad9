"""数据库管理器：统一门面（Facade）。

DatabaseManager 是 database 模块的统一入口，组合了所有子仓库，
提供两套 API：

1. **子仓库访问**（细粒度）：
   通过 ``db.assignments``、``db.issues`` 等属性直接访问子仓库，
   返回 ORM 对象，适合需要精细控制的场景。

2. **便捷方法**（粗粒度）：
   接收字典输入，经 ``schemas`` 中的 pydantic 模型校验后调用子仓库，
   返回字典/基本类型，适合上层接口调用。
"""
from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Session

from business.notifications import (
    NotificationDispatcher, OutboxNotificationDispatcher
)
from config.settings import settings
from . import schemas
from .assignment_repos import AssignmentRepository
from .business_repos import SalesRepository
from .connection import DatabaseConnection
from .entity_repos import EmployeeRepository
from .event_repos import EventRepository, SubtaskRepository
from .issue_repos import IssueRepository
from .models import Employee
from .system_repos import AuditLogRepository, NotificationRepository


class DatabaseManager:
    """数据库管理器：统一门面。

    Attributes:
        conn: 数据库连接管理器。
        staff: 员工目录仓库。
        audit: 审计日志仓库。
        notifications: 通知发件箱仓库。
        dispatcher: 问题引擎使用的通知分发器。
        assignments: 成员分配仓库（协调器）。
        events: 活动仓库。
        subtasks: 活动子任务仓库。
        sales: 活动销售仓库（汇总器）。
        issues: 现场问题仓库（生命周期引擎）。

    Example::

        db = DatabaseManager("sqlite:///data/events.db")
        db.create_tables()

        # 通过子仓库访问（返回 ORM 对象）
        issue = db.issues.escalate(issue_id, escalated_to=7, escalated_by=3)

        # 通过便捷方法访问（返回字典）
        details = db.get_event_with_details(event_id)
    """

    def __init__(self, database_url: Optional[str] = None,
                 dispatcher: Optional[NotificationDispatcher] = None) -> None:
        """初始化数据库管理器。

        Args:
            database_url: 数据库连接URL。如果为None则使用settings配置。
            dispatcher: 通知分发器。如果为None则使用写入通知发件箱的默认实现。
        """
        # 基础设施层
        self.conn = DatabaseConnection(database_url)

        # 实体与系统仓库
        self.staff = EmployeeRepository(self.conn)
        self.audit = AuditLogRepository(self.conn)
        self.notifications = NotificationRepository(self.conn)
        self.dispatcher = dispatcher or OutboxNotificationDispatcher(
            self.notifications, enabled=settings.notifications_enabled
        )

        # 业务仓库
        self.assignments = AssignmentRepository(self.conn, self.staff, self.audit)
        self.events = EventRepository(
            self.conn, self.staff, self.assignments, self.audit
        )
        self.subtasks = SubtaskRepository(
            self.conn, self.staff, self.assignments, self.audit
        )
        self.sales = SalesRepository(
            self.conn, self.staff, self.events,
            self.assignments, self.subtasks, self.audit
        )
        self.issues = IssueRepository(
            self.conn, self.staff, self.audit, self.dispatcher
        )

    # ================================================================
    # 基础设施方法
    # ================================================================

    def create_tables(self) -> None:
        """创建所有数据库表（幂等操作）。"""
        self.conn.create_tables()

    def get_session(self) -> Session:
        """获取数据库会话。"""
        return self.conn.get_session()

    @property
    def database_url(self) -> str:
        """数据库连接URL。"""
        return self.conn.database_url

    @property
    def engine(self):
        """SQLAlchemy 引擎对象。"""
        return self.conn.engine

    def execute_raw_sql(self, sql: str,
                        params: Optional[dict] = None) -> Any:
        """执行原始 SQL 语句。

        注意：应优先使用 ORM 方法，仅在必要时使用原始 SQL。
        """
        return self.conn.execute_raw_sql(sql, params)

    def close(self) -> None:
        """关闭数据库连接，释放所有资源。"""
        self.conn.close()

    # ================================================================
    # 员工
    # ================================================================

    def register_employee(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """注册员工。

        Args:
            data: 员工数据，字段见 schemas.EmployeeCreate。

        Returns:
            员工字典。

        Raises:
            ValidationError: 输入不合法或邮箱/电话/工号重复。
        """
        payload = schemas.validate(schemas.EmployeeCreate, data)
        employee = self.staff.create(**payload.model_dump())
        return self.staff.to_dict(employee)

    def get_staff_list(self, active_only: bool = True
                       ) -> List[Dict[str, Any]]:
        """获取员工列表。

        Args:
            active_only: 是否只返回在职员工，默认 True。
        """
        if active_only:
            employees = self.staff.get_active_staff()
        else:
            employees = self.staff.get_all(Employee)

        return [
            {
                "id": e.id,
                "name": e.name,
                "employee_no": e.employee_no,
                "designation": e.designation,
                "role": e.role,
                "circle": e.circle,
                "zone": e.zone,
                "is_active": e.is_active,
            }
            for e in employees
        ]

    # ================================================================
    # 活动
    # ================================================================

    def create_event(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """创建活动，字段见 schemas.EventCreate。"""
        payload = schemas.validate(schemas.EventCreate, data)
        event = self.events.create(**payload.model_dump())
        return self.events.to_dict(event)

    def update_event(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """部分更新活动。只更新 data 中出现的字段。

        Raises:
            ValidationError: 输入不合法。
            NotFoundError: 活动不存在。
        """
        payload = schemas.validate(schemas.EventUpdate, data)
        changes = payload.model_dump(
            exclude={"id", "updated_by"}, exclude_unset=True
        )
        event = self.events.update(payload.id, payload.updated_by, **changes)
        return self.events.to_dict(event)

    def update_event_status(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """变更活动状态，字段见 schemas.EventStatusUpdate。"""
        payload = schemas.validate(schemas.EventStatusUpdate, data)
        event = self.events.update_status(
            payload.event_id, payload.status, payload.updated_by
        )
        return self.events.to_dict(event)

    def delete_event(self, event_id: int, deleted_by: int) -> bool:
        """软删除活动。"""
        return self.events.delete(event_id, deleted_by)

    def get_event_list(self, circle: Optional[str] = None,
                       zone: Optional[str] = None,
                       category: Optional[str] = None,
                       status: Optional[str] = None
                       ) -> List[Dict[str, Any]]:
        """获取活动列表（不含已删除，除非显式指定 status）。"""
        events = self.events.get_all_events(
            circle=circle, zone=zone, category=category, status=status
        )
        return [self.events.to_dict(e) for e in events]

    def get_event_with_details(self, event_id: int
                               ) -> Optional[Dict[str, Any]]:
        """获取活动详情视图，详见 SalesRepository.get_event_with_details。"""
        return self.sales.get_event_with_details(event_id)

    # ================================================================
    # 成员分配
    # ================================================================

    def assign_team(self, data: Dict[str, Any]) -> List[int]:
        """整体分配团队。

        Returns:
            本次新建分配记录的员工ID列表。
        """
        payload = schemas.validate(schemas.AssignTeamInput, data)
        return self.assignments.assign_team(
            payload.event_id, payload.employee_ids, payload.assigned_by
        )

    def assign_team_member(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """分配单个成员并设置目标。"""
        payload = schemas.validate(schemas.AssignTeamMemberInput, data)
        assignment = self.assignments.assign_team_member(**payload.model_dump())
        return self.assignments.to_dict(assignment)

    def remove_team_member(self, data: Dict[str, Any]) -> bool:
        """移除成员。"""
        payload = schemas.validate(schemas.RemoveTeamMemberInput, data)
        return self.assignments.remove_team_member(**payload.model_dump())

    def update_team_member_targets(self, data: Dict[str, Any]
                                   ) -> Optional[Dict[str, Any]]:
        """更新成员目标。成员未分配时返回 None。"""
        payload = schemas.validate(schemas.UpdateTargetsInput, data)
        assignment = self.assignments.update_team_member_targets(
            **payload.model_dump()
        )
        return self.assignments.to_dict(assignment)

    def get_my_assigned_events(self, employee_id: int
                               ) -> List[Dict[str, Any]]:
        """获取员工被分配的活动。"""
        return self.assignments.get_my_assigned_events(employee_id)

    def get_available_team_members(self, circle: str,
                                   event_id: Optional[int] = None
                                   ) -> List[Dict[str, Any]]:
        """获取业务圈内可分配的员工。"""
        return self.assignments.get_available_team_members(circle, event_id)

    # ================================================================
    # 销售
    # ================================================================

    def submit_event_sales(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """提交活动销售，字段见 schemas.SalesSubmission。

        Returns:
            销售录入字典。
        """
        payload = schemas.validate(schemas.SalesSubmission, data)
        entry = self.sales.submit_event_sales(**payload.model_dump())
        return self.sales.to_dict(entry)

    # ================================================================
    # 子任务
    # ================================================================

    def create_subtask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = schemas.validate(schemas.SubtaskCreate, data)
        subtask = self.subtasks.create(**payload.model_dump())
        return self.subtasks.to_dict(subtask)

    def update_subtask(self, data: Dict[str, Any]
                       ) -> Optional[Dict[str, Any]]:
        payload = schemas.validate(schemas.SubtaskUpdate, data)
        changes = payload.model_dump(
            exclude={"subtask_id", "updated_by"}, exclude_unset=True
        )
        subtask = self.subtasks.update(
            payload.subtask_id, payload.updated_by, **changes
        )
        return self.subtasks.to_dict(subtask)

    def delete_subtask(self, subtask_id: int, deleted_by: int) -> bool:
        return self.subtasks.delete(subtask_id, deleted_by)

    # ================================================================
    # 现场问题
    # ================================================================

    def create_issue(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """上报问题，字段见 schemas.IssueCreate。"""
        payload = schemas.validate(schemas.IssueCreate, data)
        issue = self.issues.create(
            payload.event_id, payload.raised_by, payload.type,
            payload.description, escalated_to=payload.escalated_to
        )
        return self.issues.to_dict(issue)

    def update_issue_status(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """变更问题状态。

        Raises:
            ValidationError: 状态不在 OPEN/IN_PROGRESS/RESOLVED/CLOSED 中。
            NotFoundError: 问题不存在。
        """
        payload = schemas.validate(schemas.IssueStatusUpdate, data)
        issue = self.issues.update_status(
            payload.id, payload.status, payload.updated_by,
            remarks=payload.remarks
        )
        return self.issues.to_dict(issue)

    def escalate_issue(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """升级问题。

        Raises:
            NotFoundError: 问题不存在。
        """
        payload = schemas.validate(schemas.IssueEscalation, data)
        issue = self.issues.escalate(
            payload.id, payload.escalated_to, payload.escalated_by
        )
        return self.issues.to_dict(issue)

    def get_issues(self, event_id: Optional[int] = None,
                   status: Optional[str] = None) -> List[Dict[str, Any]]:
        """获取问题列表（按创建时间倒序）。"""
        return [
            self.issues.to_dict(i)
            for i in self.issues.get_all(event_id=event_id, status=status)
        ]

    def get_open_issue_count(self) -> int:
        return self.issues.get_open_count()

    # ================================================================
    # 通知
    # ================================================================

    def get_notifications(self, employee_id: int,
                          unread_only: bool = False
                          ) -> List[Dict[str, Any]]:
        """获取员工的通知列表。"""
        return [
            self.notifications.to_dict(n)
            for n in self.notifications.get_for_employee(
                employee_id, unread_only=unread_only
            )
        ]
