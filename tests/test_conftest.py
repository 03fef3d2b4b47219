"""
测试配置和 Fixtures
提供测试用的内存数据库网关、间谍连接和通用工具
"""

import os
import sys
from typing import Generator
from unittest.mock import MagicMock

import pytest

# 确保可以导入项目模块
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlgate.core.config import reload_settings
from sqlgate.core.database import Connection
from sqlgate.core.gate import StatementGate
from sqlgate.utils import dsn


# ==================== 配置 ====================

# 使用 SQLite 内存数据库进行测试
TEST_DSN = dsn.sqlite_in_memory()

NAMES = [
    ("John", "Doe", "111-11-1111"),
    ("Jane", "Doe", "222-22-2222"),
    ("Mary", "O'Drop", "333-33-3333"),
    ("Alan", "Smith", "444-44-4444"),
    ("Bob", "Brown", "555-55-5555"),
]


def seed_names(gate: StatementGate) -> None:
    """创建并填充 names_table（绕过黑名单，直接用底层连接）"""
    gate.connection.prepare(
        "CREATE TABLE names_table ("
        "id INTEGER PRIMARY KEY, first VARCHAR(50) NOT NULL, last VARCHAR(50), ssn VARCHAR(11))"
    ).execute()
    for first, last, ssn in NAMES:
        q = gate.connection.prepare("INSERT INTO names_table (first, last, ssn) VALUES (:f, :l, :s)")
        q.bind("f", first)
        q.bind("l", last)
        q.bind("s", ssn)
        q.execute()


# ==================== Fixtures ====================

@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """每个测试前后重新加载配置，避免环境变量修改相互影响"""
    reload_settings()
    yield
    reload_settings()


@pytest.fixture
def gate() -> Generator[StatementGate, None, None]:
    """连接到内存数据库并预置 names_table 的网关"""
    g = StatementGate(TEST_DSN)
    seed_names(g)
    yield g
    g.close()


@pytest.fixture
def spy_connection() -> MagicMock:
    """记录调用的假连接，用于验证语句是否到达驱动"""
    conn = MagicMock(spec=Connection)
    statement = MagicMock()
    statement.query_string = "SELECT 1;"
    statement.execute.return_value.fetch_all.return_value = []
    conn.prepare.return_value = statement
    return conn


@pytest.fixture
def spy_gate(spy_connection) -> StatementGate:
    """使用假连接的网关"""
    return StatementGate(connection=spy_connection)
