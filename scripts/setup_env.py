#!/usr/bin/env python3
"""生成 .env 配置文件

使用方式：
    python scripts/setup_env.py              # 逐项询问
    python scripts/setup_env.py --defaults   # 全部使用默认值
    python scripts/setup_env.py --force      # 覆盖已有 .env 不再确认

写入前用 Settings 校验一遍取值，校验失败不写文件。
"""
import argparse
import os
import sys

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from pydantic import ValidationError

from config.settings import Settings

ENV_FILE = os.path.join(PROJECT_ROOT, ".env")

# (分组, env_key, 提示, 默认值)
CONFIG_ITEMS = [
    ("数据库", "DATABASE_URL", "数据库连接地址", "sqlite:///data/events.db"),
    ("数据库", "DATABASE_ECHO", "打印 SQL 语句 (true/false)", "false"),
    ("日志", "LOG_LEVEL", "日志级别 (DEBUG/INFO/WARNING/ERROR)", "INFO"),
    ("日志", "LOG_FILE", "日志文件路径，留空只输出到终端", ""),
    ("通知", "NOTIFICATIONS_ENABLED", "写入问题通知 (true/false)", "true"),
]


def ask(prompt, default):
    hint = f" [{default}]" if default else ""
    value = input(f"  {prompt}{hint}: ").strip()
    return value or default


def collect(use_defaults=False):
    """按 CONFIG_ITEMS 收集取值，返回 {env_key: value}"""
    values = {}
    group = None
    for section, key, prompt, default in CONFIG_ITEMS:
        if use_defaults:
            values[key] = default
            continue
        if section != group:
            group = section
            print(f"\n== {section} ==")
        values[key] = ask(prompt, default)
    return values


def check(values):
    """用 Settings 校验取值，返回错误描述列表"""
    try:
        Settings(
            _env_file=None,
            **{key.lower(): value for key, value in values.items() if value}
        )
    except ValidationError as e:
        return [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()]
    return []


def render(values):
    lines = ["# Field Event Tracker 配置文件", "# 由 scripts/setup_env.py 生成"]
    group = None
    for section, key, _, _ in CONFIG_ITEMS:
        if section != group:
            group = section
            lines += ["", f"# === {section} ==="]
        # 空值不写入，沿用 Settings 默认值
        if values.get(key):
            lines.append(f"{key}={values[key]}")
    return "\n".join(lines) + "\n"


def main():
    parser = argparse.ArgumentParser(description="Write the .env file")
    parser.add_argument("--defaults", action="store_true", help="use default values without prompting")
    parser.add_argument("--force", action="store_true", help="overwrite an existing .env")
    args = parser.parse_args()

    if os.path.exists(ENV_FILE) and not args.force:
        choice = input(f"{ENV_FILE} 已存在，是否覆盖？(y/N): ").strip().lower()
        if choice != "y":
            print("已取消。")
            return 1

    values = collect(use_defaults=args.defaults)
    errors = check(values)
    if errors:
        print("配置无效，未写入：")
        for error in errors:
            print(f"  - {error}")
        return 1

    with open(ENV_FILE, "w", encoding="utf-8") as f:
        f.write(render(values))

    print(f"\n已生成 {ENV_FILE}")
    print("下一步：python scripts/init_db.py --admin-name Admin --admin-no ADM001")
    return 0


if __name__ == "__main__":
    sys.exit(main())
