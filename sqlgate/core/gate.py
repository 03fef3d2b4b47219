"""
语句安全网关
在预处理语句驱动之前做白名单、黑名单检查，并统一错误分类

Usage:
    gate = StatementGate(dsn.mysql("my_database"), "my_username", "my_pass")

    gate.col_whitelist = ["first", "last"]
    gate.tbl_whitelist = ["names_table"]

    rows = gate.execute(
        f"SELECT {gate.col_check(first)} "
        f"FROM {gate.tbl_check(table)} "
        f"WHERE {gate.col_check(last)} = :ln",
        [gate.bind_value(":ln", "Doe")],
        FetchMode.NUM
    )

线程模型：实例内的黑名单和 last_statement 没有加锁，
并发场景下每个请求使用独立实例，或由调用方串行化访问。
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.types import TypeEngine

from .config import Settings, get_settings
from .database import BindValue, Connection, FetchMode, Parameter, RowSet
from .errors import ConnectionClosed, QueryExecutionFailed, translate_driver_errors
from ..utils.sql_safety import (
    BlacklistStore,
    check_column,
    check_table,
    is_safe_identifier,
    scan_statement,
)

logger = logging.getLogger(__name__)

STATEMENT_TERMINATOR = ";"


class StatementGate:
    """
    语句安全网关

    状态：未连接 -> 已连接（构造成功） -> 已关闭（close）
    """

    def __init__(
        self,
        dsn: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
        *,
        connection: Optional[Connection] = None,
        settings: Optional[Settings] = None
    ):
        """
        Args:
            dsn: SQLAlchemy URL 字符串（可用 sqlgate.utils.dsn 生成）
            user: 用户名
            password: 密码
            options: 传给 create_engine 的参数
            connection: 已建立的连接（与 dsn 二选一）
            settings: 配置，默认使用全局配置

        Raises:
            ConnectionFailed: 无法建立连接
        """
        self.settings = settings or get_settings()

        if connection is None:
            if not dsn:
                raise ValueError("必须提供 dsn 或 connection")
            connection = Connection.connect(dsn, user, password, options, settings=self.settings)

        self._conn: Optional[Connection] = connection

        self.col_whitelist: Optional[Sequence[str]] = None
        self.tbl_whitelist: Optional[Sequence[str]] = None
        self.blacklist = BlacklistStore(self.settings.default_blacklist)
        self.last_statement: Optional[str] = None

    # ==================== 生命周期 ====================

    @property
    def connection(self) -> Connection:
        """底层连接，已关闭时抛出 ConnectionClosed"""
        if self._conn is None:
            raise ConnectionClosed()
        return self._conn

    @property
    def closed(self) -> bool:
        return self._conn is None

    def close(self) -> None:
        """关闭连接，可重复调用"""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        conn.close()

    def __enter__(self) -> "StatementGate":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ==================== 白名单 / 黑名单 ====================

    def col_check(self, col: str) -> str:
        """按列白名单校验列名，通过时原样返回"""
        return check_column(col, self.col_whitelist)

    def tbl_check(self, tbl: str) -> str:
        """按表白名单校验表名，通过时原样返回"""
        return check_table(tbl, self.tbl_whitelist)

    def blacklist_add(self, token: Any) -> bool:
        """添加黑名单项（大小写不敏感）"""
        return self.blacklist.add(token)

    def blacklist_remove(self, token: Any) -> bool:
        """删除黑名单项（大小写不敏感），不存在时忽略"""
        return self.blacklist.remove(token)

    def blacklist_list(self) -> List[str]:
        """当前黑名单"""
        return self.blacklist.list()

    # ==================== 执行 ====================

    @staticmethod
    def bind_value(parameter: Parameter, value: Any, type_: Optional[TypeEngine] = None) -> BindValue:
        """构造绑定参数，用法同 execute 的 binds 参数"""
        return BindValue(parameter, value, type_)

    def _run(self, statement: str, binds: Optional[Sequence[BindValue]] = None) -> RowSet:
        """
        预处理、绑定并执行，不做黑名单检查

        非自动提交模式下，语句成功后提交，失败时回滚
        """
        conn = self.connection

        with translate_driver_errors(QueryExecutionFailed, self.settings.expose_driver_errors):
            q = conn.prepare(statement + STATEMENT_TERMINATOR)
            self.last_statement = q.query_string
            logger.debug(f"预处理语句: {q.query_string}")

            try:
                for bind in binds or ():
                    parameter, value, type_ = BindValue(*bind)
                    if type_ is not None:
                        q.bind(parameter, value, type_)
                    else:
                        q.bind(parameter, value)

                rowset = q.execute()
                conn.commit()
            except SQLAlchemyError:
                conn.rollback()
                raise

            return rowset

    def execute_rowset(
        self,
        statement: str,
        binds: Optional[Sequence[BindValue]] = None
    ) -> RowSet:
        """
        执行语句并返回完整结果集（含列名）

        Raises:
            ConnectionClosed: 连接已关闭
            BlacklistedClause: 语句含有黑名单子句，此时不会访问数据库
            QueryExecutionFailed: 驱动执行失败
        """
        if not statement or not statement.strip():
            raise ValueError("查询语句不能为空")
        if self._conn is None:
            raise ConnectionClosed()

        scan_statement(statement, self.blacklist)
        return self._run(statement, binds)

    def execute(
        self,
        statement: str,
        binds: Optional[Sequence[BindValue]] = None,
        fetch_mode: Union[FetchMode, str] = FetchMode.ASSOC
    ) -> list:
        """
        执行查询，这是运行自定义语句的主要入口

        Args:
            statement: 查询语句（拼接表名、列名前请先用 col_check / tbl_check 校验）
            binds: bind_value 构造的绑定参数列表，按顺序绑定
            fetch_mode: 返回行的形式

        Returns:
            结果行列表；不返回行的语句返回空列表
        """
        return self.execute_rowset(statement, binds).fetch_all(fetch_mode)

    query = execute

    def select_db(self, db: str) -> None:
        """切换数据库（USE <db>）"""
        if not is_safe_identifier(db):
            logger.warning(f"不安全的数据库名被拒绝: {db!r}")
            raise ValueError(f"不安全的数据库名: {db}")
        self.execute(f"USE {db}")

    # ==================== 便捷查询 ====================

    def _exists(self, statement: str) -> bool:
        try:
            self.execute_rowset(statement)
        except QueryExecutionFailed:
            return False
        return True

    def run_tbl_exists(self, tbl: str) -> bool:
        """表是否存在；执行失败视为不存在"""
        return self._exists(f"SELECT 1 FROM {self.tbl_check(tbl)} LIMIT 1")

    def run_col_exists(self, col: str, tbl: str) -> bool:
        """列是否存在；执行失败视为不存在"""
        return self._exists(f"SELECT {self.col_check(col)} FROM {self.tbl_check(tbl)} LIMIT 1")

    def run_col_count(self, tbl: str) -> int:
        """表的列数"""
        return self.execute_rowset(f"SELECT * FROM {self.tbl_check(tbl)} LIMIT 1").column_count

    def run_col_info(self, tbl: str) -> List[Dict[str, Any]]:
        """表的列信息（name / type / nullable / default / primary_key）"""
        tbl = self.tbl_check(tbl)
        conn = self.connection
        with translate_driver_errors(QueryExecutionFailed, self.settings.expose_driver_errors):
            return conn.inspect_columns(tbl)

    def run_col_data(self, col: str, tbl: str) -> list:
        """某一列的全部数据"""
        return self.execute_rowset(f"SELECT {self.col_check(col)} FROM {self.tbl_check(tbl)}").fetch_column(0)

    def run_row_total(self, tbl: str) -> int:
        """表的总行数"""
        rowset = self.execute_rowset(f"SELECT COUNT(*) FROM {self.tbl_check(tbl)}")
        return int(rowset.rows[0][0]) if rowset.rows else 0

    def run_row_data(self, row: int, tbl: str) -> Optional[tuple]:
        """
        指定行的数据（从 0 开始）

        Returns:
            按位置排列的行；行号超出总行数或为负数时返回 None
        """
        row = int(row)
        rows = self.execute_rowset(f"SELECT * FROM {self.tbl_check(tbl)}").rows
        if row < 0 or row >= len(rows):
            return None
        return rows[row]

    # ==================== 展示 / 导出 ====================

    def run_export(
        self,
        tbl: str,
        pretty_print: bool = False,
        directory: Union[str, Path, None] = None
    ) -> Path:
        """将表导出为 JSON 文件，返回文件路径"""
        from ..utils.import_export import TableExporter

        if directory is None:
            directory = self.settings.export_dir
        return TableExporter(self).export_to_file(tbl, pretty_print=pretty_print, directory=directory)

    def run_tbl_to_html(
        self,
        statement: str,
        paginate_at: int = 0,
        page: Union[int, str, None] = 1,
        pg_query_name: Optional[str] = None,
        request_uri: str = "",
        use_default_styles: bool = True
    ) -> str:
        """将查询结果渲染为 HTML 表格（可分页），返回 HTML 字符串"""
        from ..utils.html_table import HtmlTableRenderer

        renderer = HtmlTableRenderer(
            self,
            pg_query_name=pg_query_name or self.settings.html_page_query_name,
            use_default_styles=use_default_styles,
            max_page_size=self.settings.max_page_size
        )
        return renderer.render(statement, paginate_at=paginate_at, page=page, request_uri=request_uri)
