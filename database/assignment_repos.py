"""活动成员分配仓库：分配关系与活动成员列表的协调。

EventAssignment 是规范化的（活动, 员工）关系；Event.assigned_team 是它的
反规范化缓存。本模块的每个写操作都按以下顺序执行，且各步骤使用独立会话：

1. 主写入（插入/更新/删除分配记录）
2. 同步写入（更新 assigned_team）
3. 审计写入

步骤之间没有事务边界，也没有补偿回滚：并发写入同一活动时，
assigned_team 的读改写可能丢失更新，这是既有行为。
"""
from typing import Optional, List, Dict, Any
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from loguru import logger

from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .entity_repos import EmployeeRepository
from .models import Event, EventAssignment
from .system_repos import AuditLogRepository


class AssignmentRepository(BaseCRUD):
    """活动成员分配 仓库（协调器）。

    "整体分配"（assign_team）会用输入列表覆盖 assigned_team，
    可能移除仍有分配记录的成员；"单个分配"（assign_team_member）
    只追加。两条路径的差异是刻意保留的。
    """

    def __init__(self, conn: DatabaseConnection,
                 staff_repo: EmployeeRepository,
                 audit_repo: AuditLogRepository) -> None:
        super().__init__(conn)
        self._staff = staff_repo
        self._audit = audit_repo

    # ================================================================
    # 查询
    # ================================================================

    def get_assignment(self, event_id: int, employee_id: int,
                       session: Optional[Session] = None
                       ) -> Optional[EventAssignment]:
        """获取（活动, 员工）的分配记录，不存在返回 None。"""
        def _query(sess):
            return sess.query(EventAssignment).filter(
                EventAssignment.event_id == event_id,
                EventAssignment.employee_id == employee_id
            ).first()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_by_event(self, event_id: int,
                     session: Optional[Session] = None
                     ) -> List[EventAssignment]:
        """获取活动的全部分配记录（按创建顺序）。"""
        def _query(sess):
            return sess.query(EventAssignment).filter(
                EventAssignment.event_id == event_id
            ).order_by(EventAssignment.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_my_assigned_events(self, employee_id: int
                               ) -> List[Dict[str, Any]]:
        """获取员工被分配的活动，按开始时间倒序。

        Returns:
            活动字典列表，每项附带 ``assignment`` 字段。
        """
        with self._get_session() as session:
            rows = session.query(Event, EventAssignment).join(
                EventAssignment, EventAssignment.event_id == Event.id
            ).filter(
                EventAssignment.employee_id == employee_id
            ).order_by(Event.start_date.desc()).all()

            return [
                {**self.to_dict(event), "assignment": self.to_dict(assignment)}
                for event, assignment in rows
            ]

    def get_available_team_members(self, circle: str,
                                   event_id: Optional[int] = None
                                   ) -> List[Dict[str, Any]]:
        """获取业务圈内的在职员工，并标记是否已分配到指定活动。"""
        employees = self._staff.get_by_circle(circle)
        assigned_ids = set()
        if event_id is not None:
            assigned_ids = {
                a.employee_id for a in self.get_by_event(event_id)
            }
        return [
            {**self.to_dict(e), "is_assigned": e.id in assigned_ids}
            for e in employees
        ]

    # ================================================================
    # 协调写入
    # ================================================================

    def assign_team(self, event_id: int, employee_ids: List[int],
                    assigned_by: int) -> List[int]:
        """整体分配团队。

        为尚无分配记录的员工创建零目标的分配记录（已存在则跳过），
        然后用输入列表原样覆盖 assigned_team。

        Args:
            event_id: 活动ID。
            employee_ids: 员工ID列表（覆盖后的 assigned_team）。
            assigned_by: 操作人员工ID。

        Returns:
            本次新建分配记录的员工ID列表。

        Raises:
            PartialEffectError: 分配记录已写入，但成员列表同步或审计失败。
        """
        created: List[int] = []
        for employee_id in employee_ids:
            if self._insert_if_absent(event_id, employee_id, assigned_by):
                created.append(employee_id)

        self._run_secondary(
            "sync_team", created,
            lambda: self._overwrite_team(event_id, list(employee_ids))
        )
        self._run_secondary(
            "audit", created,
            lambda: self._audit.append(
                "ASSIGN_TEAM", "EVENT", event_id, assigned_by,
                {"employee_ids": list(employee_ids)}
            )
        )
        logger.info(
            f"Team assigned to event #{event_id}: {list(employee_ids)} "
            f"({len(created)} new)"
        )
        return created

    def assign_team_member(self, event_id: int, employee_id: int,
                           sim_target: int, ftth_target: int,
                           assigned_by: int) -> EventAssignment:
        """分配单个成员并设置目标（存在则更新目标）。

        新建分配时把员工追加到 assigned_team（已在列表中则不重复追加）。

        Returns:
            更新或新建后的 EventAssignment 对象。

        Raises:
            PartialEffectError: 分配记录已写入，但成员列表同步或审计失败。
        """
        existing = self.get_assignment(event_id, employee_id)
        if existing:
            assignment = self.update_by_id(
                EventAssignment, existing.id,
                sim_target=sim_target, ftth_target=ftth_target
            )
        else:
            assignment = self._insert(
                event_id, employee_id, assigned_by,
                sim_target=sim_target, ftth_target=ftth_target
            )
            self._run_secondary(
                "sync_team", assignment,
                lambda: self._append_to_team(event_id, employee_id)
            )

        self._run_secondary(
            "audit", assignment,
            lambda: self._audit.append(
                "ASSIGN_TEAM_MEMBER", "EVENT", event_id, assigned_by,
                {
                    "employee_id": employee_id,
                    "sim_target": sim_target,
                    "ftth_target": ftth_target,
                }
            )
        )
        logger.info(
            f"Member #{employee_id} assigned to event #{event_id} "
            f"(sim={sim_target}, ftth={ftth_target})"
        )
        return assignment

    def remove_team_member(self, event_id: int, employee_id: int,
                           removed_by: int) -> bool:
        """移除成员：先删除分配记录，再从 assigned_team 中过滤掉该员工。

        两次写入相互独立，第二次失败时第一次不回滚。

        Returns:
            是否删除了分配记录。

        Raises:
            PartialEffectError: 分配记录已删除，但成员列表同步或审计失败。
        """
        with self._get_session() as session:
            deleted = session.query(EventAssignment).filter(
                EventAssignment.event_id == event_id,
                EventAssignment.employee_id == employee_id
            ).delete()
            session.commit()

        self._run_secondary(
            "sync_team", deleted > 0,
            lambda: self._remove_from_team(event_id, employee_id)
        )
        self._run_secondary(
            "audit", deleted > 0,
            lambda: self._audit.append(
                "REMOVE_TEAM_MEMBER", "EVENT", event_id, removed_by,
                {"employee_id": employee_id}
            )
        )
        logger.info(f"Member #{employee_id} removed from event #{event_id}")
        return deleted > 0

    def update_team_member_targets(self, event_id: int, employee_id: int,
                                   sim_target: int, ftth_target: int,
                                   updated_by: int
                                   ) -> Optional[EventAssignment]:
        """只更新已有分配记录的目标。

        分配记录不存在时为静默空操作（返回 None），审计记录照常写入。

        Returns:
            更新后的 EventAssignment，不存在返回 None。
        """
        existing = self.get_assignment(event_id, employee_id)
        assignment = None
        if existing:
            assignment = self.update_by_id(
                EventAssignment, existing.id,
                sim_target=sim_target, ftth_target=ftth_target
            )
        else:
            logger.debug(
                f"No assignment for member #{employee_id} on event "
                f"#{event_id}; targets not updated"
            )

        self._run_secondary(
            "audit", assignment,
            lambda: self._audit.append(
                "UPDATE_TEAM_TARGETS", "EVENT", event_id, updated_by,
                {
                    "employee_id": employee_id,
                    "sim_target": sim_target,
                    "ftth_target": ftth_target,
                }
            )
        )
        return assignment

    def ensure_member(self, event_id: int, employee_id: int,
                      assigned_by: int, reason: str) -> bool:
        """隐式分配：员工尚未分配到活动时，自动创建零目标分配。

        用于创建活动（指定负责人）和创建子任务（指定执行人）。
        新建时同步 assigned_team 并写入独立的 AUTO_ASSIGN_TEAM_MEMBER 审计。

        Args:
            reason: 隐式分配原因（如 ``event_manager``、``subtask_assignment``）。

        Returns:
            是否新建了分配记录。
        """
        if not self._insert_if_absent(event_id, employee_id, assigned_by):
            return False

        self._run_secondary(
            "sync_team", True,
            lambda: self._append_to_team(event_id, employee_id)
        )
        self._run_secondary(
            "audit", True,
            lambda: self._audit.append(
                "AUTO_ASSIGN_TEAM_MEMBER", "EVENT", event_id, assigned_by,
                {"employee_id": employee_id, "reason": reason}
            )
        )
        logger.info(
            f"Member #{employee_id} auto-assigned to event #{event_id} ({reason})"
        )
        return True

    # ================================================================
    # 内部写入步骤
    # ================================================================

    def _insert(self, event_id: int, employee_id: int, assigned_by: int,
                sim_target: int = 0, ftth_target: int = 0) -> EventAssignment:
        with self._get_session() as session:
            assignment = EventAssignment(
                event_id=event_id,
                employee_id=employee_id,
                sim_target=sim_target,
                ftth_target=ftth_target,
                sim_sold=0,
                ftth_sold=0,
                assigned_by=assigned_by
            )
            session.add(assignment)
            session.commit()
            session.refresh(assignment)
            return assignment

    def _insert_if_absent(self, event_id: int, employee_id: int,
                          assigned_by: int) -> bool:
        """插入零目标分配；已存在（含并发插入冲突）则跳过。"""
        if self.get_assignment(event_id, employee_id):
            return False
        try:
            self._insert(event_id, employee_id, assigned_by)
        except IntegrityError:
            logger.debug(
                f"Assignment for member #{employee_id} on event #{event_id} "
                f"already exists"
            )
            return False
        return True

    def _append_to_team(self, event_id: int, employee_id: int) -> None:
        with self._get_session() as session:
            event = session.query(Event).filter(Event.id == event_id).first()
            if event is None:
                return
            current_team = list(event.assigned_team or [])
            if employee_id not in current_team:
                event.assigned_team = current_team + [employee_id]
                session.commit()

    def _remove_from_team(self, event_id: int, employee_id: int) -> None:
        with self._get_session() as session:
            event = session.query(Event).filter(Event.id == event_id).first()
            if event is None:
                return
            event.assigned_team = [
                member for member in (event.assigned_team or [])
                if member != employee_id
            ]
            session.commit()

    def _overwrite_team(self, event_id: int, employee_ids: List[int]) -> None:
        with self._get_session() as session:
            event = session.query(Event).filter(Event.id == event_id).first()
            if event is None:
                return
            event.assigned_team = employee_ids
            session.commit()
