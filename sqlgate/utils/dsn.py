"""
DSN（连接串）生成工具
每种数据库一个工厂函数，返回 SQLAlchemy URL 字符串

用户名和密码通常在建立连接时单独传入（StatementGate(dsn, user, password)），
这里只负责主机、端口、库名等连接描述；空的可选参数会被省略。
"""

from typing import Dict, Optional, Union
from urllib.parse import quote_plus

from sqlalchemy.engine import URL

Port = Union[int, str, None]


def _port(port: Port) -> Optional[int]:
    if port in (None, ""):
        return None
    return int(port)


def _query(**params: Optional[str]) -> Dict[str, str]:
    return {k: str(v) for k, v in params.items() if v}


def _render(url: URL) -> str:
    return url.render_as_string(hide_password=False)


def mysql(
    db: str = "",
    host: str = "localhost",
    port: Port = None,
    charset: str = "",
    driver: str = "pymysql"
) -> str:
    """MySQL / MariaDB"""
    return _render(URL.create(
        f"mysql+{driver}",
        host=host or None,
        port=_port(port),
        database=db or None,
        query=_query(charset=charset),
    ))


def mysql_socket(db: str, unix_socket: str, charset: str = "", driver: str = "pymysql") -> str:
    """通过 Unix socket 连接 MySQL"""
    return _render(URL.create(
        f"mysql+{driver}",
        database=db or None,
        query=_query(unix_socket=unix_socket, charset=charset),
    ))


def pgsql(
    db: str = "",
    host: str = "localhost",
    port: Port = None,
    driver: str = "psycopg2"
) -> str:
    """PostgreSQL"""
    return _render(URL.create(
        f"postgresql+{driver}",
        host=host or None,
        port=_port(port),
        database=db or None,
    ))


def sqlite(db: str) -> str:
    """SQLite 文件数据库"""
    return _render(URL.create("sqlite", database=db or None))


def sqlite_in_memory() -> str:
    """SQLite 内存数据库"""
    return "sqlite://"


def mssql(
    db: str = "",
    host: str = "localhost",
    port: Port = None,
    odbc_driver: str = "ODBC Driver 18 for SQL Server"
) -> str:
    """Microsoft SQL Server（pyodbc）"""
    return _render(URL.create(
        "mssql+pyodbc",
        host=host or None,
        port=_port(port),
        database=db or None,
        query=_query(driver=odbc_driver),
    ))


def odbc(dsn_name: str) -> str:
    """通过系统配置的 ODBC 数据源名连接 SQL Server"""
    return _render(URL.create("mssql+pyodbc", host=dsn_name))


def odbc_full(connection_string: str) -> str:
    """使用完整 ODBC 连接串（DRIVER=...;SERVER=...;）"""
    return f"mssql+pyodbc:///?odbc_connect={quote_plus(connection_string)}"


def oracle(
    service_name: str,
    host: str = "localhost",
    port: Port = 1521,
    driver: str = "oracledb"
) -> str:
    """Oracle"""
    return _render(URL.create(
        f"oracle+{driver}",
        host=host or None,
        port=_port(port),
        query=_query(service_name=service_name),
    ))


def firebird(db: str, host: str = "localhost", port: Port = None, charset: str = "", role: str = "") -> str:
    """Firebird（需要第三方方言 sqlalchemy-firebird）"""
    return _render(URL.create(
        "firebird+fdb",
        host=host or None,
        port=_port(port),
        database=db or None,
        query=_query(charset=charset, role=role),
    ))
