"""业务规则模块 - 与存储无关的工作流规则

- notifications: 通知分发接口、通知模板、状态变更通知决策表
"""
from business.notifications import (
    NotificationDispatcher,
    NotificationKind,
    OutboxNotificationDispatcher,
    Participants,
    PlannedNotification,
    plan_status_notifications,
)

__all__ = [
    "NotificationDispatcher",
    "NotificationKind",
    "OutboxNotificationDispatcher",
    "Participants",
    "PlannedNotification",
    "plan_status_notifications",
]
