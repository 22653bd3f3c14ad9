"""初始化数据库"""
import argparse
import sys
import os

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import DatabaseManager, ValidationError
from config.log_config import setup_logging
from loguru import logger


def init_database(admin_name=None, admin_no=None, admin_email=None):
    """初始化数据库，可选写入一名管理员员工"""
    logger.info("Initializing database...")

    # 创建数据库管理器
    db = DatabaseManager()

    # 创建所有表
    logger.info("Creating tables...")
    db.create_tables()

    if admin_name:
        logger.info("Inserting administrator...")
        try:
            admin = db.register_employee({
                "name": admin_name,
                "employee_no": admin_no,
                "email": admin_email,
                "designation": "Administrator",
                "role": "ADMIN",
            })
            logger.info(f"Created administrator: {admin['name']} (#{admin['id']})")
        except ValidationError as e:
            logger.warning(f"Administrator not created: {e} {e.errors}")

    db.close()
    logger.info("Database initialization completed!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create tables and seed an administrator")
    parser.add_argument("--admin-name", help="administrator display name")
    parser.add_argument("--admin-no", help="administrator employee number")
    parser.add_argument("--admin-email", help="administrator email")
    args = parser.parse_args()

    setup_logging()
    init_database(args.admin_name, args.admin_no, args.admin_email)
