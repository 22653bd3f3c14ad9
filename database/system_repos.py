"""系统数据仓库：系统级数据的数据访问层。

管理审计日志与通知发件箱。两者都是只追加的数据：
核心业务只写入，不依赖其返回值。
"""
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy.orm import Session
from loguru import logger

from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .models import AuditLog, Notification


def _to_json_safe(value: Any) -> Any:
    """把日期、Decimal 等转换为可写入 JSON 列的值。"""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_json_safe(v) for v in value]
    return value


class AuditLogRepository(BaseCRUD):
    """审计日志 仓库。

    记录每个写操作的动作、实体、执行人和结构化详情。
    审计写入发生在主写入之后，失败时不回滚主写入。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def append(self, action: str, entity_type: str, entity_id: int,
               performed_by: Optional[int],
               details: Optional[Dict[str, Any]] = None) -> None:
        """追加一条审计记录。

        Args:
            action: 动作名称（如 ASSIGN_TEAM、CREATE_ISSUE）。
            entity_type: 实体类型（EVENT / SALES / ISSUE）。
            entity_id: 实体ID。
            performed_by: 执行人员工ID。
            details: 结构化详情（可选）。
        """
        with self._get_session() as session:
            session.add(AuditLog(
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                performed_by=performed_by,
                details=_to_json_safe(details or {})
            ))
            session.commit()
        logger.debug(f"Audit {action} {entity_type}#{entity_id} by {performed_by}")

    def get_by_entity(self, entity_type: str, entity_id: int,
                      session: Optional[Session] = None) -> List[AuditLog]:
        """获取某实体的全部审计记录（按写入顺序）。"""
        def _query(sess):
            return sess.query(AuditLog).filter(
                AuditLog.entity_type == entity_type,
                AuditLog.entity_id == entity_id
            ).order_by(AuditLog.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_by_action(self, action: str,
                      session: Optional[Session] = None) -> List[AuditLog]:
        """获取某动作的全部审计记录。"""
        def _query(sess):
            return sess.query(AuditLog).filter(
                AuditLog.action == action
            ).order_by(AuditLog.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)


class NotificationRepository(BaseCRUD):
    """通知发件箱 仓库。

    默认通知分发器把渲染好的通知写入此表，外部推送服务负责投递。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def enqueue(self, employee_id: int, kind: str, title: str, body: str,
                context: Optional[Dict[str, Any]] = None) -> int:
        """写入一条待投递通知。

        Returns:
            通知记录ID。
        """
        with self._get_session() as session:
            notification = Notification(
                employee_id=employee_id,
                kind=kind,
                title=title,
                body=body,
                context=_to_json_safe(context or {})
            )
            session.add(notification)
            session.commit()
            session.refresh(notification)
            return notification.id

    def get_for_employee(self, employee_id: int, unread_only: bool = False,
                         session: Optional[Session] = None
                         ) -> List[Notification]:
        """获取员工的通知（按写入顺序）。

        Args:
            employee_id: 员工ID。
            unread_only: 是否只返回未读通知。
        """
        def _query(sess):
            query = sess.query(Notification).filter(
                Notification.employee_id == employee_id
            )
            if unread_only:
                query = query.filter(Notification.is_read.is_(False))
            return query.order_by(Notification.id).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def mark_read(self, notification_id: int,
                  session: Optional[Session] = None) -> bool:
        """标记通知为已读。

        Returns:
            是否找到并更新了通知。
        """
        result = self.update_by_id(
            Notification, notification_id, session=session, is_read=True
        )
        return result is not None
