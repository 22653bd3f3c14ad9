"""业务记录仓库：活动销售录入与汇总视图。

销售录入（EventSalesEntry）是不可变事实，创建后不再修改。
每次录入后把数量累加到对应成员分配的 sim_sold / ftth_sold 上：
先读取分配记录，再写回"旧值 + 本次数量"，两步之间没有并发保护，
并发提交同一成员时可能丢失一次累加（既有行为，不在此处串行化）。
"""
from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Session
from loguru import logger

from .assignment_repos import AssignmentRepository
from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .entity_repos import EmployeeRepository
from .errors import ValidationError
from .event_repos import EventRepository, SubtaskRepository
from .models import EventAssignment, EventSalesEntry
from .system_repos import AuditLogRepository


class SalesRepository(BaseCRUD):
    """活动销售 仓库（销售汇总器）。

    依赖员工目录、活动仓库、分配仓库、子任务仓库与审计日志。
    """

    def __init__(self, conn: DatabaseConnection,
                 staff_repo: EmployeeRepository,
                 event_repo: EventRepository,
                 assignment_repo: AssignmentRepository,
                 subtask_repo: SubtaskRepository,
                 audit_repo: AuditLogRepository) -> None:
        super().__init__(conn)
        self._staff = staff_repo
        self._events = event_repo
        self._assignments = assignment_repo
        self._subtasks = subtask_repo
        self._audit = audit_repo

    def submit_event_sales(self, event_id: int, employee_id: int,
                           sims_sold: int, sims_activated: int,
                           ftth_sold: int, ftth_activated: int,
                           customer_type: str,
                           photos: Optional[List[Dict[str, Any]]] = None,
                           gps_latitude: Optional[str] = None,
                           gps_longitude: Optional[str] = None,
                           remarks: Optional[str] = None) -> EventSalesEntry:
        """提交一次活动销售。

        写入不可变的销售录入；若（活动, 员工）存在分配记录，
        则把本次数量累加到其 sim_sold / ftth_sold。没有分配记录时
        销售录入照常保存，不更新任何汇总。

        Args:
            event_id: 活动ID。
            employee_id: 提交人员工ID。
            sims_sold / sims_activated: SIM 销售与激活数量。
            ftth_sold / ftth_activated: FTTH 销售与激活数量。
            customer_type: 客户类型（B2C/B2B/Government/Enterprise）。
            photos: 现场照片列表（uri、经纬度、时间戳），可选。
            gps_latitude / gps_longitude: 提交位置，可选。
            remarks: 备注，可选。

        Returns:
            新建的 EventSalesEntry 对象。

        Raises:
            PartialEffectError: 销售录入已保存，但汇总更新或审计失败。
        """
        with self._get_session() as session:
            entry = EventSalesEntry(
                event_id=event_id,
                employee_id=employee_id,
                sims_sold=sims_sold,
                sims_activated=sims_activated,
                ftth_sold=ftth_sold,
                ftth_activated=ftth_activated,
                customer_type=customer_type,
                photos=list(photos or []),
                gps_latitude=gps_latitude,
                gps_longitude=gps_longitude,
                remarks=remarks
            )
            session.add(entry)
            session.commit()
            session.refresh(entry)

        self._run_secondary(
            "aggregate", entry,
            lambda: self._fold_into_assignment(
                event_id, employee_id, sims_sold, ftth_sold
            )
        )
        self._run_secondary(
            "audit", entry,
            lambda: self._audit.append(
                "SUBMIT_EVENT_SALES", "SALES", entry.id, employee_id,
                {
                    "event_id": event_id,
                    "sims_sold": sims_sold,
                    "ftth_sold": ftth_sold,
                }
            )
        )
        logger.info(
            f"Sales submitted for event #{event_id} by #{employee_id}: "
            f"sim={sims_sold}, ftth={ftth_sold}"
        )
        return entry

    def _fold_into_assignment(self, event_id: int, employee_id: int,
                              sims_sold: int, ftth_sold: int) -> bool:
        """读取分配记录后写回累加值；没有分配记录返回 False。"""
        assignment = self._assignments.get_assignment(event_id, employee_id)
        if assignment is None:
            logger.debug(
                f"No assignment for member #{employee_id} on event "
                f"#{event_id}; sales not aggregated"
            )
            return False

        self.update_by_id(
            EventAssignment, assignment.id,
            sim_sold=(assignment.sim_sold or 0) + sims_sold,
            ftth_sold=(assignment.ftth_sold or 0) + ftth_sold
        )
        return True

    def get_event_sales_entries(self, event_id: int,
                                session: Optional[Session] = None
                                ) -> List[EventSalesEntry]:
        """获取活动的销售录入（按创建时间倒序）。"""
        def _query(sess):
            return sess.query(EventSalesEntry).filter(
                EventSalesEntry.event_id == event_id
            ).order_by(
                EventSalesEntry.created_at.desc(), EventSalesEntry.id.desc()
            ).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_event_with_details(self, event_id: int
                               ) -> Optional[Dict[str, Any]]:
        """组装活动详情视图。

        包含活动本身、负责人、每个成员分配（同时给出存储的 sim_sold /
        ftth_sold 与按销售录入重算的 actual_sim_sold / actual_ftth_sold）、
        销售录入、子任务（含执行人）以及汇总统计。

        Args:
            event_id: 活动ID。

        Returns:
            详情字典，活动不存在返回 None。

        Raises:
            ValidationError: 未提供活动ID。
        """
        if event_id is None or event_id == "":
            raise ValidationError("Event ID is required")

        with self._get_session() as session:
            event = self._events.get(event_id, session=session)
            if event is None:
                logger.debug(f"Event #{event_id} not found")
                return None

            assignments = self._assignments.get_by_event(event_id, session=session)
            entries = self.get_event_sales_entries(event_id, session=session)
            subtasks = self._subtasks.get_by_event(event_id, session=session)

            employee_ids = [a.employee_id for a in assignments]
            employee_ids += [s.assigned_to for s in subtasks if s.assigned_to]
            if event.assigned_to:
                employee_ids.append(event.assigned_to)
            employees = self._staff.get_many(employee_ids, session=session)

            entry_dicts = [self.to_dict(e) for e in entries]

            team = []
            for assignment in assignments:
                member_entries = [
                    e for e in entry_dicts
                    if e["employee_id"] == assignment.employee_id
                ]
                team.append({
                    **self.to_dict(assignment),
                    "employee": self.to_dict(employees.get(assignment.employee_id)),
                    "actual_sim_sold": sum(e["sims_sold"] for e in member_entries),
                    "actual_ftth_sold": sum(e["ftth_sold"] for e in member_entries),
                    "sales_entries": member_entries,
                })

            subtask_dicts = [
                {
                    **self.to_dict(s),
                    "assigned_employee": (
                        self.to_dict(employees.get(s.assigned_to))
                        if s.assigned_to else None
                    ),
                }
                for s in subtasks
            ]

            return {
                **self.to_dict(event),
                "assigned_to_employee": (
                    self.to_dict(employees.get(event.assigned_to))
                    if event.assigned_to else None
                ),
                "team_with_allocations": team,
                "sales_entries": entry_dicts,
                "subtasks": subtask_dicts,
                "summary": {
                    "total_sims_sold": sum(e["sims_sold"] for e in entry_dicts),
                    "total_ftth_sold": sum(e["ftth_sold"] for e in entry_dicts),
                    "total_entries": len(entry_dicts),
                    "team_count": len(assignments),
                    "subtask_stats": {
                        "total": len(subtasks),
                        "completed": sum(1 for s in subtasks if s.status == "completed"),
                        "pending": sum(1 for s in subtasks if s.status == "pending"),
                        "in_progress": sum(1 for s in subtasks if s.status == "in_progress"),
                    },
                },
            }
