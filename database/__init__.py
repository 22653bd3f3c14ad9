"""数据访问模块 - 活动、成员分配、销售、现场问题的持久化

核心组件：
- DatabaseManager: 统一门面，组合全部仓库
- DatabaseConnection: 引擎与会话管理
- 异常：NotFoundError / ValidationError / PartialEffectError

使用示例：
    ```python
    from database import DatabaseManager

    db = DatabaseManager("sqlite:///data/events.db")
    db.create_tables()
    db.assign_team({"event_id": 1, "employee_ids": [2, 3], "assigned_by": 1})
    ```
"""
from database.connection import DatabaseConnection
from database.errors import (
    DatabaseError,
    NotFoundError,
    PartialEffectError,
    ValidationError,
)
from database.manager import DatabaseManager

__all__ = [
    "DatabaseConnection",
    "DatabaseError",
    "DatabaseManager",
    "NotFoundError",
    "PartialEffectError",
    "ValidationError",
]
