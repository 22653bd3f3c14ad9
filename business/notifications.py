"""现场问题通知 - 分发接口与通知规则

定义通知分发器（NotificationDispatcher）接口、通知模板，
以及问题状态变更时"通知谁、发什么"的决策表。

核心概念：
- NotificationKind: 通知类型（问题上报 / 问题解决 / 状态变更）
- NotificationDispatcher: 分发器抽象基类，调用方视角为"发出即忘"
- OutboxNotificationDispatcher: 默认实现，渲染模板后写入通知发件箱
- plan_status_notifications: 状态变更通知决策表，不依赖存储，可单独测试

设计原则：
- 通知规则与存储解耦，规则集可审计
- 推送投递由外部系统负责，本模块不关心投递机制
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger


class NotificationKind(Enum):
    """通知类型"""
    ISSUE_RAISED = "IssueRaised"                  # 问题上报 / 升级给某人
    ISSUE_RESOLVED = "IssueResolved"              # 问题已解决或关闭
    ISSUE_STATUS_CHANGED = "IssueStatusChanged"   # 其他状态变更


TERMINAL_STATUSES = ("RESOLVED", "CLOSED")

# 通知模板：(标题, 正文)，占位符取自 context
TEMPLATES: Dict[NotificationKind, Tuple[str, str]] = {
    NotificationKind.ISSUE_RAISED: (
        "New issue: {issue_type}",
        "{actor_name} raised a {issue_type} issue at {event_name}.",
    ),
    NotificationKind.ISSUE_RESOLVED: (
        "Issue resolved",
        "Your {issue_type} issue was resolved by {actor_name}.",
    ),
    NotificationKind.ISSUE_STATUS_CHANGED: (
        "Issue status changed",
        "{actor_name} changed the issue status to {status}.",
    ),
}


def render(kind: NotificationKind, context: Dict[str, Any]) -> Tuple[str, str]:
    """按通知类型渲染标题和正文。

    context 中缺少的占位符原样保留为空字符串，不会抛出异常。

    Returns:
        (标题, 正文)
    """
    title, body = TEMPLATES[kind]
    values = _DefaultDict(context)
    return title.format_map(values), body.format_map(values)


class _DefaultDict(dict):
    def __missing__(self, key):
        return ""


class NotificationDispatcher(ABC):
    """通知分发器抽象基类

    调用方只负责调用 notify()，不消费返回值，也不做重试。
    """

    @abstractmethod
    def notify(self, employee_id: int, kind: NotificationKind,
               context: Dict[str, Any]) -> None:
        """向员工发送一条通知

        Args:
            employee_id: 接收人员工ID
            kind: 通知类型
            context: 模板上下文（issue_id、issue_type、event_name、actor_name、status 等）
        """
        pass


class OutboxNotificationDispatcher(NotificationDispatcher):
    """默认通知分发器：渲染模板后写入通知发件箱

    使用方式：
        ```python
        dispatcher = OutboxNotificationDispatcher(db.notifications)
        dispatcher.notify(7, NotificationKind.ISSUE_RAISED, {...})
        ```
    """

    def __init__(self, notification_repo, enabled: bool = True):
        """
        Args:
            notification_repo: 通知仓库，需提供 enqueue(employee_id, kind, title, body, context)
            enabled: 是否启用；禁用时只记录日志
        """
        self._notifications = notification_repo
        self.enabled = enabled

    def notify(self, employee_id: int, kind: NotificationKind,
               context: Dict[str, Any]) -> None:
        if not self.enabled:
            logger.debug(f"通知已禁用，跳过 {kind.value} -> #{employee_id}")
            return
        title, body = render(kind, context)
        self._notifications.enqueue(
            employee_id, kind.value, title, body, context
        )
        logger.info(f"通知已入队: {kind.value} -> #{employee_id}")


# ================================================================
# 状态变更通知决策表
# ================================================================

@dataclass(frozen=True)
class Participants:
    """一次状态变更涉及的人员

    Attributes:
        updated_by: 本次操作人
        raised_by: 问题上报人
        escalated_to: 当前升级对象（可能为空）
    """
    updated_by: int
    raised_by: int
    escalated_to: Optional[int] = None


@dataclass(frozen=True)
class NotificationRule:
    """决策表中的一行

    Attributes:
        terminal: 适用于终态（RESOLVED/CLOSED）还是非终态
        recipient: 接收人角色，"raised_by" 或 "escalated_to"
        kind: 通知类型
        applies: 基于人员身份比较的条件
    """
    terminal: bool
    recipient: str
    kind: NotificationKind
    applies: Callable[[Participants], bool]


@dataclass(frozen=True)
class PlannedNotification:
    """决策结果：向谁发送哪种通知"""
    employee_id: int
    kind: NotificationKind


STATUS_CHANGE_RULES: Tuple[NotificationRule, ...] = (
    # 终态：操作人不是上报人时，通知上报人问题已解决
    NotificationRule(
        terminal=True,
        recipient="raised_by",
        kind=NotificationKind.ISSUE_RESOLVED,
        applies=lambda p: p.updated_by != p.raised_by,
    ),
    # 非终态：通知上报人（除非本人操作）
    NotificationRule(
        terminal=False,
        recipient="raised_by",
        kind=NotificationKind.ISSUE_STATUS_CHANGED,
        applies=lambda p: p.updated_by != p.raised_by,
    ),
    # 非终态：另行通知升级对象，与操作人、上报人都不同才发，避免重复
    NotificationRule(
        terminal=False,
        recipient="escalated_to",
        kind=NotificationKind.ISSUE_STATUS_CHANGED,
        applies=lambda p: (
            p.escalated_to is not None
            and p.escalated_to != p.updated_by
            and p.escalated_to != p.raised_by
        ),
    ),
)


def plan_status_notifications(status: str,
                              participants: Participants
                              ) -> List[PlannedNotification]:
    """根据目标状态和人员身份，计算需要发送的通知

    Args:
        status: 目标状态
        participants: 操作人、上报人、升级对象

    Returns:
        按规则顺序排列的通知计划，可能为空
    """
    terminal = status in TERMINAL_STATUSES
    planned = []
    for rule in STATUS_CHANGE_RULES:
        if rule.terminal != terminal or not rule.applies(participants):
            continue
        planned.append(PlannedNotification(
            employee_id=getattr(participants, rule.recipient),
            kind=rule.kind,
        ))
    return planned
