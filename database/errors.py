"""数据访问层的异常类型。

- NotFoundError: 操作目标（活动/问题/员工等）不存在，调用方原样展示。
- ValidationError: 输入不合法，在任何写入之前拒绝。
- PartialEffectError: 主写入已提交，但后续的同步写入或审计写入失败；
  主写入不回滚。
"""
from typing import Any, List, Optional


class DatabaseError(Exception):
    """数据访问层异常基类。"""


class NotFoundError(DatabaseError, LookupError):
    """目标记录不存在。"""

    def __init__(self, entity: str, key: Any = None) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found")


class ValidationError(DatabaseError, ValueError):
    """输入校验失败。

    Attributes:
        errors: 字段级错误描述列表。
    """

    def __init__(self, message: str,
                 errors: Optional[List[str]] = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class PartialEffectError(DatabaseError):
    """主写入成功后，次级写入失败。

    Attributes:
        step: 失败的次级步骤名称（如 ``sync_team``、``audit``）。
        result: 已提交的主写入结果。
    """

    def __init__(self, step: str, result: Any = None) -> None:
        self.step = step
        self.result = result
        super().__init__(f"Secondary write '{step}' failed after primary write")
