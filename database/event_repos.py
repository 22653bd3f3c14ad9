"""活动仓库：推广活动与活动子任务的数据访问层。

活动是 assigned_team（反规范化成员列表）和生命周期状态的事实来源。
创建活动时指定负责人、创建子任务时指定执行人，都会通过
AssignmentRepository.ensure_member 隐式创建成员分配。
"""
from typing import Optional, List, Dict, Any
from datetime import datetime
from sqlalchemy.orm import Session
from loguru import logger

from .assignment_repos import AssignmentRepository
from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .entity_repos import EmployeeRepository
from .errors import NotFoundError
from .models import Event, EventSubtask
from .system_repos import AuditLogRepository

# 可通过 update() 修改的活动字段；成员列表只能经由分配协调器修改
EVENT_EDITABLE_FIELDS = (
    "name", "location", "circle", "zone", "category",
    "start_date", "end_date", "target_sim", "target_ftth",
    "allocated_sim", "allocated_ftth", "key_insight", "status", "assigned_to",
)

SUBTASK_EDITABLE_FIELDS = (
    "title", "description", "assigned_to", "status", "priority", "due_date",
)


class EventRepository(BaseCRUD):
    """推广活动 仓库。"""

    def __init__(self, conn: DatabaseConnection,
                 staff_repo: EmployeeRepository,
                 assignment_repo: AssignmentRepository,
                 audit_repo: AuditLogRepository) -> None:
        super().__init__(conn)
        self._staff = staff_repo
        self._assignments = assignment_repo
        self._audit = audit_repo

    def create(self, name: str, location: str, circle: str, zone: str,
               category: str, start_date: Any, end_date: Any,
               created_by: int,
               target_sim: int = 0, target_ftth: int = 0,
               allocated_sim: int = 0, allocated_ftth: int = 0,
               assigned_team: Optional[List[int]] = None,
               key_insight: Optional[str] = None,
               assigned_to: Optional[int] = None,
               assigned_to_staff_id: Optional[str] = None) -> Event:
        """创建活动。

        负责人取 assigned_to；未提供时按员工编号 assigned_to_staff_id 解析，
        编号无法解析则忽略。有负责人时隐式创建其成员分配。

        Args:
            start_date / end_date: datetime、date 或 ISO 字符串。
            assigned_team: 初始成员列表（可选，默认空列表）。
            assigned_to: 负责人员工ID（可选）。
            assigned_to_staff_id: 负责人员工编号（可选）。

        Returns:
            新建的 Event 对象（含隐式分配后的 assigned_team）。

        Raises:
            ValidationError: 日期缺失或格式无效。
            PartialEffectError: 活动已创建，但隐式分配或审计失败。
        """
        manager_id = assigned_to
        if manager_id is None and assigned_to_staff_id:
            try:
                manager_id = self._staff.resolve_by_code(assigned_to_staff_id).id
            except NotFoundError:
                logger.warning(
                    f"Staff code {assigned_to_staff_id} not found; "
                    f"event created without manager"
                )

        with self._get_session() as session:
            event = Event(
                name=name,
                location=location,
                circle=circle,
                zone=zone,
                category=category,
                start_date=self._parse_datetime(start_date, "Start date"),
                end_date=self._parse_datetime(end_date, "End date"),
                target_sim=target_sim,
                target_ftth=target_ftth,
                allocated_sim=allocated_sim,
                allocated_ftth=allocated_ftth,
                assigned_team=list(assigned_team or []),
                key_insight=key_insight,
                assigned_to=manager_id,
                created_by=created_by
            )
            session.add(event)
            session.commit()
            session.refresh(event)

        if manager_id is not None:
            created = self._run_secondary(
                "auto_assign", event,
                lambda: self._assignments.ensure_member(
                    event.id, manager_id, created_by, reason="event_manager"
                )
            )
            if created:
                event = self.get_by_id(Event, event.id)

        self._run_secondary(
            "audit", event,
            lambda: self._audit.append(
                "CREATE_EVENT", "EVENT", event.id, created_by,
                {"event_name": name}
            )
        )
        logger.info(f"Event created: {name} (#{event.id})")
        return event

    def update(self, event_id: int, updated_by: int,
               **changes: Any) -> Event:
        """部分更新活动字段。

        只接受 EVENT_EDITABLE_FIELDS 中的字段，其余键被忽略。

        Raises:
            NotFoundError: 活动不存在。
        """
        values = {k: v for k, v in changes.items() if k in EVENT_EDITABLE_FIELDS}
        for key in ("start_date", "end_date"):
            if values.get(key) is not None:
                values[key] = self._parse_datetime(values[key], key)

        event = self.update_by_id(Event, event_id, **values)
        if event is None:
            raise NotFoundError("Event", event_id)

        self._run_secondary(
            "audit", event,
            lambda: self._audit.append(
                "UPDATE_EVENT", "EVENT", event_id, updated_by, values
            )
        )
        logger.info(f"Event #{event_id} updated: {sorted(values)}")
        return event

    def update_status(self, event_id: int, status: str,
                      updated_by: int) -> Event:
        """变更活动状态。

        Raises:
            NotFoundError: 活动不存在。
        """
        event = self.update_by_id(Event, event_id, status=status)
        if event is None:
            raise NotFoundError("Event", event_id)

        self._run_secondary(
            "audit", event,
            lambda: self._audit.append(
                "UPDATE_EVENT_STATUS", "EVENT", event_id, updated_by,
                {"status": status}
            )
        )
        logger.info(f"Event #{event_id} status -> {status}")
        return event

    def delete(self, event_id: int, deleted_by: int) -> bool:
        """软删除活动（状态置为 deleted）。

        Raises:
            NotFoundError: 活动不存在。
        """
        event = self.update_by_id(Event, event_id, status="deleted")
        if event is None:
            raise NotFoundError("Event", event_id)

        self._run_secondary(
            "audit", True,
            lambda: self._audit.append(
                "DELETE_EVENT", "EVENT", event_id, deleted_by, {}
            )
        )
        logger.info(f"Event #{event_id} deleted")
        return True

    # ================================================================
    # 查询
    # ================================================================

    def get(self, event_id: int,
            session: Optional[Session] = None) -> Optional[Event]:
        """按ID获取活动，不存在返回 None。"""
        return self.get_by_id(Event, event_id, session=session)

    def get_all_events(self, circle: Optional[str] = None,
                       zone: Optional[str] = None,
                       category: Optional[str] = None,
                       status: Optional[str] = None) -> List[Event]:
        """获取活动列表（按创建时间倒序）。

        未指定 status 时不包含已删除的活动。
        """
        with self._get_session() as session:
            query = session.query(Event)
            if circle:
                query = query.filter(Event.circle == circle)
            if zone:
                query = query.filter(Event.zone == zone)
            if category:
                query = query.filter(Event.category == category)
            if status:
                query = query.filter(Event.status == status)
            else:
                query = query.filter(Event.status != "deleted")
            return query.order_by(Event.created_at.desc(), Event.id.desc()).all()

    def get_by_circle(self, circle: str) -> List[Event]:
        """获取业务圈内的活动。"""
        return self.get_all_events(circle=circle)

    def get_active_events(self, now: Optional[datetime] = None) -> List[Event]:
        """获取进行中的活动：状态 active 且当前时间在起止时间之间。"""
        now = now or datetime.utcnow()
        with self._get_session() as session:
            return session.query(Event).filter(
                Event.start_date <= now,
                Event.end_date >= now,
                Event.status == "active"
            ).order_by(Event.start_date.desc()).all()

    def get_upcoming_events(self, now: Optional[datetime] = None) -> List[Event]:
        """获取即将开始的活动：状态 active 且尚未开始。"""
        now = now or datetime.utcnow()
        with self._get_session() as session:
            return session.query(Event).filter(
                Event.start_date >= now,
                Event.status == "active"
            ).order_by(Event.start_date).all()


class SubtaskRepository(BaseCRUD):
    """活动子任务 仓库。"""

    def __init__(self, conn: DatabaseConnection,
                 staff_repo: EmployeeRepository,
                 assignment_repo: AssignmentRepository,
                 audit_repo: AuditLogRepository) -> None:
        super().__init__(conn)
        self._staff = staff_repo
        self._assignments = assignment_repo
        self._audit = audit_repo

    def create(self, event_id: int, title: str, created_by: int,
               description: Optional[str] = None,
               assigned_to: Optional[int] = None,
               staff_id: Optional[str] = None,
               priority: str = "medium",
               due_date: Any = None) -> EventSubtask:
        """创建子任务。

        执行人取 assigned_to；未提供时按员工编号 staff_id 解析。
        执行人尚未分配到活动时，先隐式创建其分配（独立审计），再写入子任务。

        Returns:
            新建的 EventSubtask 对象。
        """
        assignee_id = assigned_to
        if assignee_id is None and staff_id:
            try:
                assignee_id = self._staff.resolve_by_code(staff_id).id
            except NotFoundError:
                logger.warning(f"Staff code {staff_id} not found; subtask unassigned")

        if assignee_id is not None:
            self._assignments.ensure_member(
                event_id, assignee_id, created_by, reason="subtask_assignment"
            )

        with self._get_session() as session:
            subtask = EventSubtask(
                event_id=event_id,
                title=title,
                description=description,
                assigned_to=assignee_id,
                priority=priority,
                due_date=self._parse_datetime(due_date, "Due date", required=False),
                created_by=created_by
            )
            session.add(subtask)
            session.commit()
            session.refresh(subtask)

        self._run_secondary(
            "audit", subtask,
            lambda: self._audit.append(
                "CREATE_SUBTASK", "EVENT", event_id, created_by,
                {
                    "subtask_id": subtask.id,
                    "title": title,
                    "assigned_to": assignee_id,
                }
            )
        )
        logger.info(f"Subtask #{subtask.id} created on event #{event_id}")
        return subtask

    def update(self, subtask_id: int, updated_by: int,
               **changes: Any) -> Optional[EventSubtask]:
        """部分更新子任务。

        状态改为 completed 时写入 completed_at / completed_by。
        子任务不存在时返回 None，且不写审计。
        """
        values: Dict[str, Any] = {
            k: v for k, v in changes.items() if k in SUBTASK_EDITABLE_FIELDS
        }
        if "due_date" in values:
            values["due_date"] = self._parse_datetime(
                values["due_date"], "Due date", required=False
            )
        audit_changes = dict(values)
        if values.get("status") == "completed":
            values["completed_at"] = datetime.utcnow()
            values["completed_by"] = updated_by

        subtask = self.update_by_id(EventSubtask, subtask_id, **values)
        if subtask is None:
            logger.debug(f"Subtask #{subtask_id} not found; nothing updated")
            return None

        self._run_secondary(
            "audit", subtask,
            lambda: self._audit.append(
                "UPDATE_SUBTASK", "EVENT", subtask.event_id, updated_by,
                {"subtask_id": subtask_id, "changes": audit_changes}
            )
        )
        return subtask

    def delete(self, subtask_id: int, deleted_by: int) -> bool:
        """删除子任务。子任务存在时写入审计。

        Returns:
            是否删除了子任务。
        """
        subtask = self.get_by_id(EventSubtask, subtask_id)
        self.delete_by_id(EventSubtask, subtask_id)
        if subtask is None:
            return False

        self._run_secondary(
            "audit", True,
            lambda: self._audit.append(
                "DELETE_SUBTASK", "EVENT", subtask.event_id, deleted_by,
                {"subtask_id": subtask_id, "title": subtask.title}
            )
        )
        logger.info(f"Subtask #{subtask_id} deleted")
        return True

    def get_by_event(self, event_id: int,
                     session: Optional[Session] = None) -> List[EventSubtask]:
        """获取活动的子任务（按创建时间倒序）。"""
        def _query(sess):
            return sess.query(EventSubtask).filter(
                EventSubtask.event_id == event_id
            ).order_by(EventSubtask.created_at.desc(), EventSubtask.id.desc()).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)
