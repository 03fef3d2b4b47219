"""
数据库连接管理
对 SQLAlchemy 的同步连接做一层薄封装：连接、预处理、绑定、执行、结果集

本模块只负责驱动交互，驱动异常原样抛出（SQLAlchemyError），
由调用方通过 translate_driver_errors 转换为分类错误。
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence, Union

from sqlalchemy import bindparam, create_engine, inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.engine import Connection as SAConnection
from sqlalchemy.types import TypeEngine

from .config import Settings, get_settings
from .errors import ConnectionClosed, ConnectionFailed, driver_error, translate_driver_errors

logger = logging.getLogger(__name__)

Parameter = Union[str, int]


class FetchMode(str, Enum):
    """结果行的返回形式"""
    ASSOC = "assoc"    # 按列名的字典
    NUM = "num"        # 按位置的元组
    BOTH = "both"      # 同时按列名和位置


class BindValue(NamedTuple):
    """
    绑定参数

    parameter 为参数名（":ln" 或 "ln"）或从 1 开始的位置序号；
    type_ 为 None 时由驱动根据值推断类型。
    """
    parameter: Parameter
    value: Any
    type_: Optional[TypeEngine] = None


class RowSet:
    """查询结果集"""

    def __init__(self, columns: Sequence[str], rows: Sequence[Sequence[Any]]):
        self.columns: List[str] = [str(c) for c in columns]
        self.rows: List[tuple] = [tuple(r) for r in rows]

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def _shape(self, row: tuple, mode: FetchMode):
        if mode == FetchMode.NUM:
            return row
        named = dict(zip(self.columns, row))
        if mode == FetchMode.BOTH:
            named.update(enumerate(row))
        return named

    def fetch_all(self, mode: FetchMode = FetchMode.ASSOC) -> list:
        """按指定形式返回全部行"""
        mode = FetchMode(mode)
        return [self._shape(row, mode) for row in self.rows]

    def fetch_column(self, index: int = 0) -> list:
        """返回某一列的全部值"""
        return [row[index] for row in self.rows]

    def __len__(self) -> int:
        return len(self.rows)


class PreparedStatement:
    """
    预处理语句

    命名参数通过 text().bindparams() 绑定；
    位置参数（整数序号）使用驱动原生占位符，经 exec_driver_sql 执行；
    没有任何绑定参数时语句原样交给驱动，字面量中的冒号不会被当作参数。
    """

    def __init__(self, connection: SAConnection, sql: str):
        self._connection = connection
        self.query_string = sql
        self._named: Dict[str, Any] = {}
        self._named_types: Dict[str, TypeEngine] = {}
        self._positional: Dict[int, Any] = {}

    def bind(self, parameter: Parameter, value: Any, type_: Optional[TypeEngine] = None) -> None:
        """绑定一个参数值"""
        if isinstance(parameter, bool):
            raise ArgumentError("参数标识不能是布尔值")

        if isinstance(parameter, int):
            if parameter < 1:
                raise ArgumentError("位置参数序号从 1 开始")
            self._positional[parameter] = value
            return

        name = str(parameter).lstrip(":")
        if not name:
            raise ArgumentError("参数名不能为空")
        self._named[name] = value
        if type_ is not None:
            self._named_types[name] = type_

    def execute(self) -> RowSet:
        """执行语句并取回全部结果"""
        if self._named and self._positional:
            raise ArgumentError("不能同时使用命名参数和位置参数")

        if self._positional:
            expected = list(range(1, len(self._positional) + 1))
            if sorted(self._positional) != expected:
                raise ArgumentError("位置参数序号必须连续")
            params = tuple(self._positional[i] for i in expected)
            result = self._connection.exec_driver_sql(self.query_string, params)
        elif self._named:
            clause = text(self.query_string).bindparams(*[
                bindparam(name, value, type_=self._named_types.get(name))
                for name, value in self._named.items()
            ])
            result = self._connection.execute(clause)
        else:
            result = self._connection.exec_driver_sql(
                self.query_string,
                execution_options={"no_parameters": True}
            )

        if not result.returns_rows:
            result.close()
            return RowSet([], [])

        columns = list(result.keys())
        rows = result.fetchall()
        return RowSet(columns, rows)


class Connection:
    """
    数据库连接

    持有一个 Engine 和一个打开的连接，关闭后所有操作抛出 ConnectionClosed

    autocommit 为 False 时连接处于事务中，由调用方在语句成功后 commit、失败后 rollback；
    未提交的修改在 close 时回滚。
    """

    def __init__(self, engine: Engine, connection: SAConnection, autocommit: bool = True):
        self._engine = engine
        self._connection: Optional[SAConnection] = connection
        self.autocommit = autocommit

    @classmethod
    def connect(
        cls,
        dsn: str,
        user: Optional[str] = None,
        password: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
        settings: Optional[Settings] = None
    ) -> "Connection":
        """
        建立连接

        Args:
            dsn: SQLAlchemy URL 字符串，可用 sqlgate.utils.dsn 中的函数生成
            user: 用户名（覆盖 URL 中的用户名）
            password: 密码（覆盖 URL 中的密码）
            options: 传给 create_engine 的关键字参数（优先于配置）
            settings: 配置，默认使用全局配置

        Raises:
            ConnectionFailed: URL 无效、参数无效、驱动缺失或数据库拒绝连接
        """
        settings = settings or get_settings()
        expose = settings.expose_driver_errors

        engine_options: Dict[str, Any] = {"pool_pre_ping": settings.pool_pre_ping}
        if settings.autocommit:
            engine_options["isolation_level"] = "AUTOCOMMIT"
        engine_options.update(options or {})
        autocommit = str(engine_options.get("isolation_level", "")).upper() == "AUTOCOMMIT"

        with translate_driver_errors(ConnectionFailed, expose):
            url = make_url(dsn)
            if user is not None:
                url = url.set(username=user)
            if password is not None:
                url = url.set(password=password)

            try:
                engine = create_engine(url, **engine_options)
            except (TypeError, ImportError) as e:
                # 无效的 create_engine 参数，或驱动包未安装
                raise driver_error(e, ConnectionFailed, expose) from e

            try:
                connection = engine.connect()
            except Exception:
                engine.dispose()
                raise

        logger.info(f"数据库连接已建立: {url.get_backend_name()} (autocommit={autocommit})")
        return cls(engine, connection, autocommit=autocommit)

    @property
    def closed(self) -> bool:
        return self._connection is None

    @property
    def dialect_name(self) -> str:
        return self._engine.dialect.name

    def _require_open(self) -> SAConnection:
        if self._connection is None:
            raise ConnectionClosed()
        return self._connection

    def prepare(self, sql: str) -> PreparedStatement:
        """预处理语句"""
        return PreparedStatement(self._require_open(), sql)

    def commit(self) -> None:
        """提交当前事务（自动提交模式下无操作）"""
        if self.autocommit:
            return
        self._require_open().commit()

    def rollback(self) -> None:
        """回滚当前事务（自动提交模式或没有进行中的事务时无操作）"""
        if self.autocommit or self._connection is None:
            return
        if self._connection.in_transaction():
            self._connection.rollback()

    def inspect_columns(self, table: str) -> List[Dict[str, Any]]:
        """通过 SQLAlchemy Inspector 读取列信息"""
        insp = inspect(self._require_open())
        return [
            {
                "name": c.get("name"),
                "type": str(c.get("type")),
                "nullable": c.get("nullable"),
                "default": c.get("default"),
                "primary_key": bool(c.get("primary_key")),
            }
            for c in insp.get_columns(table)
        ]

    def close(self) -> None:
        """关闭连接，可重复调用"""
        if self._connection is None:
            return
        try:
            self._connection.close()
        finally:
            self._connection = None
            self._engine.dispose()
            logger.info("数据库连接已关闭")
