"""实体仓库：基础实体的数据访问层。

员工目录：按 ID 或人类可读的员工编号解析员工，
以及注册、搜索、按业务圈查询等基础能力。
"""
from typing import Optional, List, Dict, Any
from sqlalchemy import or_
from sqlalchemy.orm import Session
from loguru import logger

from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .errors import NotFoundError, ValidationError
from .models import Employee


class EmployeeRepository(BaseCRUD):
    """员工目录 仓库。

    对核心业务暴露两个解析接口：
    - resolve(id)：按员工ID解析
    - resolve_by_code(code)：按员工编号（工号）解析

    两者在员工不存在时抛出 NotFoundError。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def resolve(self, employee_id: int,
                session: Optional[Session] = None) -> Employee:
        """按ID解析员工。

        Raises:
            NotFoundError: 员工不存在。
        """
        employee = self.get_by_id(Employee, employee_id, session=session)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    def resolve_by_code(self, code: str,
                        session: Optional[Session] = None) -> Employee:
        """按员工编号解析员工。

        Raises:
            NotFoundError: 编号不存在。
        """
        def _query(sess):
            return sess.query(Employee).filter(
                Employee.employee_no == code
            ).first()

        if session:
            employee = _query(session)
        else:
            with self._get_session() as sess:
                employee = _query(sess)

        if employee is None:
            raise NotFoundError("Employee", code)
        return employee

    def create(self, name: str,
               employee_no: Optional[str] = None,
               email: Optional[str] = None,
               phone: Optional[str] = None,
               designation: Optional[str] = None,
               role: str = "SALES_STAFF",
               circle: Optional[str] = None,
               zone: Optional[str] = None,
               extra_data: Optional[Dict[str, Any]] = None) -> Employee:
        """注册新员工。

        邮箱、电话、员工编号三者均不得与已有员工重复。

        Returns:
            新建的 Employee 对象。

        Raises:
            ValidationError: 存在重复的邮箱、电话或员工编号。
        """
        with self._get_session() as session:
            conditions = []
            if email:
                conditions.append(Employee.email == email)
            if phone:
                conditions.append(Employee.phone == phone)
            if employee_no:
                conditions.append(Employee.employee_no == employee_no)

            if conditions:
                existing = session.query(Employee).filter(
                    or_(*conditions)
                ).first()
                if existing:
                    errors = []
                    if email and existing.email == email:
                        errors.append("Email already registered")
                    if phone and existing.phone == phone:
                        errors.append("Phone number already registered")
                    if employee_no and existing.employee_no == employee_no:
                        errors.append("Employee number already exists")
                    raise ValidationError("Employee already exists", errors)

            employee = Employee(
                name=name,
                employee_no=employee_no,
                email=email,
                phone=phone,
                designation=designation,
                role=role,
                circle=circle,
                zone=zone,
                extra_data=extra_data or {}
            )
            session.add(employee)
            session.commit()
            session.refresh(employee)

        logger.info(f"Employee registered: {employee.name} (#{employee.id})")
        return employee

    def get_active_staff(self,
                         session: Optional[Session] = None) -> List[Employee]:
        """获取所有在职员工。"""
        return self.get_all(
            Employee, filters={"is_active": True}, session=session
        )

    def get_by_circle(self, circle: str, active_only: bool = True,
                      session: Optional[Session] = None) -> List[Employee]:
        """获取某业务圈的员工。

        Args:
            circle: 业务圈。
            active_only: 是否只返回在职员工。
        """
        filters: Dict[str, Any] = {"circle": circle}
        if active_only:
            filters["is_active"] = True
        return self.get_all(Employee, filters=filters, session=session)

    def get_many(self, employee_ids: List[int],
                 session: Optional[Session] = None) -> Dict[int, Employee]:
        """批量获取员工，返回 ID 到员工的映射（缺失的ID不出现）。"""
        if not employee_ids:
            return {}

        def _query(sess):
            rows = sess.query(Employee).filter(
                Employee.id.in_(set(employee_ids))
            ).all()
            return {e.id: e for e in rows}

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def deactivate(self, employee_id: int,
                   session: Optional[Session] = None) -> Optional[Employee]:
        """停用员工。

        Returns:
            更新后的 Employee 对象，不存在返回 None。
        """
        return self.update_by_id(
            Employee, employee_id, session=session, is_active=False
        )

    def search(self, keyword: str,
               session: Optional[Session] = None) -> List[Employee]:
        """按姓名或员工编号搜索员工。"""
        def _query(sess):
            return sess.query(Employee).filter(
                or_(
                    Employee.name.contains(keyword),
                    Employee.employee_no.contains(keyword)
                )
            ).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)
