"""通用 CRUD 基类。

所有仓库继承 BaseCRUD 获得通用的按ID查询、条件查询、更新、删除能力。
每个方法都接受可选的外部会话：传入则在该会话内执行、由调用方提交；
不传则自行开启会话并提交。
"""
from typing import Optional, List, Dict, Any, Callable, Type, TypeVar
from datetime import date, datetime, timezone
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from loguru import logger

from .connection import DatabaseConnection
from .errors import PartialEffectError, ValidationError

ModelT = TypeVar("ModelT")


class BaseCRUD:
    """通用数据访问能力。

    Attributes:
        conn: 数据库连接管理器。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        self.conn = conn

    def _get_session(self) -> Session:
        return self.conn.get_session()

    def get_by_id(self, model: Type[ModelT], record_id: int,
                  session: Optional[Session] = None) -> Optional[ModelT]:
        """按主键查询记录。

        Returns:
            记录对象，不存在返回 None。
        """
        def _query(sess):
            return sess.query(model).filter(model.id == record_id).first()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_all(self, model: Type[ModelT],
                filters: Optional[Dict[str, Any]] = None,
                session: Optional[Session] = None) -> List[ModelT]:
        """按等值条件查询全部记录。

        Args:
            model: ORM 模型类。
            filters: 字段名到取值的等值条件（可选）。

        Returns:
            记录列表。
        """
        def _query(sess):
            query = sess.query(model)
            for key, value in (filters or {}).items():
                query = query.filter(getattr(model, key) == value)
            return query.all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def update_by_id(self, model: Type[ModelT], record_id: int,
                     session: Optional[Session] = None,
                     **fields: Any) -> Optional[ModelT]:
        """按主键更新记录字段。

        Returns:
            更新后的记录对象，不存在返回 None。
        """
        def _do(sess):
            record = sess.query(model).filter(model.id == record_id).first()
            if record is None:
                return None
            for key, value in fields.items():
                setattr(record, key, value)
            sess.flush()
            return record

        if session:
            return _do(session)

        with self._get_session() as sess:
            record = _do(sess)
            if record is not None:
                sess.commit()
                sess.refresh(record)
            return record

    def delete_by_id(self, model: Type[ModelT], record_id: int,
                     session: Optional[Session] = None) -> bool:
        """按主键删除记录。

        Returns:
            是否删除了记录。
        """
        def _do(sess):
            deleted = sess.query(model).filter(model.id == record_id).delete()
            return deleted > 0

        if session:
            return _do(session)

        with self._get_session() as sess:
            deleted = _do(sess)
            sess.commit()
            return deleted

    @staticmethod
    def to_dict(record: Any) -> Optional[Dict[str, Any]]:
        """把 ORM 记录转换为列名到值的字典（不含关系）。"""
        if record is None:
            return None
        return {
            column.name: getattr(record, column.name)
            for column in record.__table__.columns
        }

    @staticmethod
    def _run_secondary(step: str, result: Any, func: Callable[[], Any]) -> Any:
        """执行主写入之后的次级写入。

        次级写入失败时不回滚主写入，而是抛出 PartialEffectError，
        并通过异常链保留原始存储错误。

        Args:
            step: 次级步骤名称。
            result: 已提交的主写入结果。
            func: 次级写入。

        Raises:
            PartialEffectError: 次级写入出现存储错误。
        """
        try:
            return func()
        except SQLAlchemyError as e:
            logger.error(f"Secondary write '{step}' failed: {e}")
            raise PartialEffectError(step, result) from e

    @staticmethod
    def _parse_datetime(value: Any, field_name: str = "Date",
                        required: bool = True) -> Optional[datetime]:
        """解析日期时间输入。

        支持 datetime、date、ISO 8601 字符串（含 ``YYYY-MM-DD``）。

        Raises:
            ValidationError: 缺失（且必填）或格式无效。
        """
        if value is None or value == "":
            if required:
                raise ValidationError(f"{field_name} is required")
            return None
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                raise ValidationError(
                    f"{field_name} has invalid format: {value}"
                )
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
            return parsed
        raise ValidationError(f"{field_name} has unsupported type")
