"""现场问题仓库：问题生命周期状态机。

状态：OPEN → IN_PROGRESS → RESOLVED / CLOSED。不强制状态转换表，
任何状态都可以设置为任何其他状态，副作用由目标状态决定：

- 每次变更向问题时间线追加一条记录（只追加，不修改历史记录）
- 转入 RESOLVED / CLOSED 时写入 resolved_by / resolved_at
- 所有存储写入完成后，按决策表发送通知；通知失败只记录日志，不影响操作结果
"""
from typing import Optional, List, Dict, Any, Callable
from datetime import datetime
from sqlalchemy.orm import Session
from loguru import logger

from business.notifications import (
    NotificationDispatcher, NotificationKind, Participants,
    plan_status_notifications, TERMINAL_STATUSES
)
from config.business_config import business_config
from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .entity_repos import EmployeeRepository
from .errors import NotFoundError
from .models import Event, Issue
from .system_repos import AuditLogRepository


class IssueRepository(BaseCRUD):
    """现场问题 仓库（生命周期引擎）。

    依赖员工目录（解析姓名）、审计日志和通知分发器。
    通知分发器可以为 None，此时不发送任何通知。
    """

    def __init__(self, conn: DatabaseConnection,
                 staff_repo: EmployeeRepository,
                 audit_repo: AuditLogRepository,
                 dispatcher: Optional[NotificationDispatcher] = None) -> None:
        super().__init__(conn)
        self._staff = staff_repo
        self._audit = audit_repo
        self.dispatcher = dispatcher
        self._labels = business_config.get_placeholder_labels()

    # ================================================================
    # 生命周期
    # ================================================================

    def create(self, event_id: int, raised_by: int, issue_type: str,
               description: str,
               escalated_to: Optional[int] = None) -> Issue:
        """上报问题。

        初始状态为 OPEN，时间线写入一条 "Issue Created"。
        指定了 escalated_to 时，向其发送一条 IssueRaised 通知。

        Args:
            event_id: 活动ID。
            raised_by: 上报人员工ID。
            issue_type: 问题类型。
            description: 问题描述。
            escalated_to: 升级对象员工ID（可选）。

        Returns:
            新建的 Issue 对象。
        """
        with self._get_session() as session:
            issue = Issue(
                event_id=event_id,
                raised_by=raised_by,
                type=issue_type,
                description=description,
                status="OPEN",
                escalated_to=escalated_to,
                timeline=[self._timeline_entry("Issue Created", raised_by)]
            )
            session.add(issue)
            session.commit()
            session.refresh(issue)

        self._run_secondary(
            "audit", issue,
            lambda: self._audit.append(
                "CREATE_ISSUE", "ISSUE", issue.id, raised_by,
                {"event_id": event_id, "type": issue_type}
            )
        )
        logger.info(f"Issue #{issue.id} raised on event #{event_id} by #{raised_by}")

        if escalated_to is not None:
            self._notify_safely(
                escalated_to, NotificationKind.ISSUE_RAISED,
                lambda: {
                    "issue_id": issue.id,
                    "issue_type": issue_type,
                    "event_name": self._event_name(event_id),
                    "actor_name": self._employee_name(
                        raised_by, self._labels["raiser"]
                    ),
                }
            )
        return issue

    def update_status(self, issue_id: int, status: str, updated_by: int,
                      remarks: Optional[str] = None) -> Issue:
        """变更问题状态。

        追加一条时间线记录；转入终态时写入 resolved_by / resolved_at；
        通知按 plan_status_notifications 决策表发送。

        Raises:
            NotFoundError: 问题不存在。
        """
        action = f"Status changed to {status}"
        if remarks:
            action = f"{action}: {remarks}"

        with self._get_session() as session:
            issue = session.query(Issue).filter(Issue.id == issue_id).first()
            if issue is None:
                raise NotFoundError("Issue", issue_id)

            issue.timeline = list(issue.timeline or []) + [
                self._timeline_entry(action, updated_by)
            ]
            issue.status = status
            if status in TERMINAL_STATUSES:
                issue.resolved_by = updated_by
                issue.resolved_at = datetime.utcnow()
            session.commit()
            session.refresh(issue)

        self._run_secondary(
            "audit", issue,
            lambda: self._audit.append(
                "UPDATE_ISSUE_STATUS", "ISSUE", issue_id, updated_by,
                {"status": status}
            )
        )
        logger.info(f"Issue #{issue_id} status -> {status} by #{updated_by}")

        planned = plan_status_notifications(status, Participants(
            updated_by=updated_by,
            raised_by=issue.raised_by,
            escalated_to=issue.escalated_to,
        ))
        for item in planned:
            self._notify_safely(
                item.employee_id, item.kind,
                lambda: {
                    "issue_id": issue_id,
                    "issue_type": issue.type,
                    "status": status,
                    "actor_name": self._employee_name(
                        updated_by, self._labels["manager"]
                    ),
                }
            )
        return issue

    def escalate(self, issue_id: int, escalated_to: int,
                 escalated_by: int) -> Issue:
        """升级问题。

        设置升级对象，无论原状态如何都强制改为 IN_PROGRESS，
        追加一条时间线记录，并通知新的升级对象。

        Raises:
            NotFoundError: 问题不存在。
        """
        with self._get_session() as session:
            issue = session.query(Issue).filter(Issue.id == issue_id).first()
            if issue is None:
                raise NotFoundError("Issue", issue_id)

            issue.timeline = list(issue.timeline or []) + [
                self._timeline_entry(f"Escalated to {escalated_to}", escalated_by)
            ]
            issue.escalated_to = escalated_to
            issue.status = "IN_PROGRESS"
            session.commit()
            session.refresh(issue)

        self._run_secondary(
            "audit", issue,
            lambda: self._audit.append(
                "ESCALATE_ISSUE", "ISSUE", issue_id, escalated_by,
                {"escalated_to": escalated_to}
            )
        )
        logger.info(f"Issue #{issue_id} escalated to #{escalated_to} by #{escalated_by}")

        self._notify_safely(
            escalated_to, NotificationKind.ISSUE_RAISED,
            lambda: {
                "issue_id": issue_id,
                "issue_type": issue.type,
                "event_name": self._event_name(issue.event_id),
                "actor_name": self._employee_name(
                    escalated_by, self._labels["manager"]
                ),
            }
        )
        return issue

    # ================================================================
    # 查询
    # ================================================================

    def get(self, issue_id: int,
            session: Optional[Session] = None) -> Optional[Issue]:
        """按ID获取问题，不存在返回 None。"""
        return self.get_by_id(Issue, issue_id, session=session)

    def get_open_count(self) -> int:
        """获取 OPEN 状态的问题数量。"""
        with self._get_session() as session:
            return session.query(Issue).filter(Issue.status == "OPEN").count()

    def get_all(self, event_id: Optional[int] = None,
                status: Optional[str] = None,
                session: Optional[Session] = None) -> List[Issue]:
        """获取问题列表（按创建时间倒序），可按活动、状态过滤。"""
        def _query(sess):
            query = sess.query(Issue)
            if event_id is not None:
                query = query.filter(Issue.event_id == event_id)
            if status:
                query = query.filter(Issue.status == status)
            return query.order_by(Issue.created_at.desc(), Issue.id.desc()).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_by_event(self, event_id: int) -> List[Issue]:
        """获取活动的问题列表。"""
        return self.get_all(event_id=event_id)

    def get_by_status(self, status: str) -> List[Issue]:
        """获取指定状态的问题列表。"""
        return self.get_all(status=status)

    def get_by_raised_by(self, raised_by: int) -> List[Issue]:
        """获取员工上报的问题列表。"""
        with self._get_session() as session:
            return session.query(Issue).filter(
                Issue.raised_by == raised_by
            ).order_by(Issue.created_at.desc(), Issue.id.desc()).all()

    # ================================================================
    # 内部方法
    # ================================================================

    @staticmethod
    def _timeline_entry(action: str, performed_by: int) -> Dict[str, Any]:
        return {
            "action": action,
            "performed_by": performed_by,
            "timestamp": datetime.utcnow().isoformat(),
        }

    def _employee_name(self, employee_id: int, fallback: str) -> str:
        try:
            return self._staff.resolve(employee_id).name or fallback
        except NotFoundError:
            return fallback

    def _event_name(self, event_id: int) -> str:
        event = self.get_by_id(Event, event_id)
        if event is None or not event.name:
            return self._labels["event"]
        return event.name

    def _notify_safely(self, employee_id: int, kind: NotificationKind,
                       build_context: Callable[[], Dict[str, Any]]) -> None:
        """发送通知；构造上下文或分发失败只记录日志。"""
        if self.dispatcher is None:
            return
        try:
            self.dispatcher.notify(employee_id, kind, build_context())
        except Exception as e:
            logger.error(f"Notification {kind.value} -> #{employee_id} failed: {e}")
