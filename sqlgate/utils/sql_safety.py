# -*- coding: utf-8 -*-
"""
语句安全校验工具
提供标识符白名单校验、黑名单子句扫描和黑名单维护

注意：黑名单扫描是基于字符串的启发式过滤，并不是 SQL 解析器。
字符串字面量的剥离不处理转义引号和嵌套引号。
"""

import re
import logging
from typing import Iterator, List, Optional, Pattern, Sequence, Type

from ..core.config import DEFAULT_BLACKLIST
from ..core.errors import (
    BlacklistedClause,
    ColumnPermissionDenied,
    PermissionDenied,
    TablePermissionDenied,
)

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_STRING_LITERAL = re.compile(r"\".*?\"|'.*?'", re.S)
_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

# 禁止作为裸标识符使用的 SQL 关键字
SQL_KEYWORDS = {
    'SELECT', 'INSERT', 'UPDATE', 'DELETE', 'DROP', 'CREATE', 'ALTER',
    'TRUNCATE', 'EXEC', 'EXECUTE', 'UNION', 'JOIN', 'WHERE', 'FROM',
    'TABLE', 'DATABASE', 'SCHEMA', 'INDEX', 'VIEW', 'TRIGGER', 'PROCEDURE',
    'FUNCTION', 'GRANT', 'REVOKE', 'COMMIT', 'ROLLBACK', 'SAVEPOINT'
}


# ==================== 标识符校验 ====================

def check_identifier(
    name: str,
    whitelist: Optional[Sequence[str]],
    error_cls: Type[PermissionDenied]
) -> str:
    """
    按白名单校验一个标识符（表名或列名）

    规则：
    - 白名单为 None 时不做限制，原样返回
    - 否则必须与白名单中的某一项严格相等（区分大小写，不去空格）

    Args:
        name: 标识符
        whitelist: 白名单，None 表示不限制
        error_cls: 校验失败时抛出的异常类型（ColumnPermissionDenied / TablePermissionDenied）

    Returns:
        原标识符

    Raises:
        PermissionDenied: 标识符不在白名单中（具体类型为 error_cls）
    """
    if whitelist is None:
        return name

    # 逐项比较类型和值，避免 1 == True 这类宽松相等
    for allowed in whitelist:
        if type(allowed) is type(name) and allowed == name:
            return name

    logger.warning(f"标识符未通过白名单校验: {name!r}")
    raise error_cls()


def check_column(name: str, whitelist: Optional[Sequence[str]]) -> str:
    """校验列名"""
    return check_identifier(name, whitelist, ColumnPermissionDenied)


def check_table(name: str, whitelist: Optional[Sequence[str]]) -> str:
    """校验表名"""
    return check_identifier(name, whitelist, TablePermissionDenied)


def is_safe_identifier(name: str) -> bool:
    """
    验证标识符形态是否安全

    规则：
    - 只允许字母、数字、下划线
    - 必须以字母或下划线开头
    - 长度在 1-128 之间
    - 不允许 SQL 关键字

    用于没有白名单可用、但仍需拼接进语句或文件名的场景（如切换数据库、导出文件名）
    """
    if not name or not isinstance(name, str):
        return False

    if len(name) > 128:
        return False

    if not _IDENTIFIER.match(name):
        return False

    if name.upper() in SQL_KEYWORDS:
        return False

    return True


# ==================== 黑名单 ====================

class BlacklistStore:
    """
    黑名单存储

    匹配、查重和删除都不区分大小写，列出时保留添加时的原始大小写
    """

    def __init__(self, tokens: Optional[Sequence[str]] = None):
        self._tokens: List[str] = []
        for token in (DEFAULT_BLACKLIST if tokens is None else tokens):
            self.add(token)

    def _index_of(self, token: str) -> Optional[int]:
        folded = token.casefold()
        for i, existing in enumerate(self._tokens):
            if existing.casefold() == folded:
                return i
        return None

    def add(self, token) -> bool:
        """
        添加黑名单项

        Returns:
            是否实际添加（已存在时返回 False）

        Raises:
            ValueError: 空值或空白字符串
        """
        if token is None:
            raise ValueError("黑名单项不能为空")
        token = str(token)
        if not token.strip():
            raise ValueError("黑名单项不能为空白字符串")

        if self._index_of(token) is not None:
            return False

        self._tokens.append(token)
        return True

    def remove(self, token) -> bool:
        """
        删除黑名单项，不存在时忽略

        Returns:
            是否实际删除
        """
        if token is None:
            return False
        at = self._index_of(str(token))
        if at is None:
            return False
        del self._tokens[at]
        return True

    def list(self) -> List[str]:
        """返回当前黑名单的副本（按添加顺序）"""
        return list(self._tokens)

    def pattern(self) -> Optional[Pattern]:
        """编译黑名单为单个交替正则；黑名单为空时返回 None"""
        if not self._tokens:
            return None
        return re.compile("|".join(re.escape(t) for t in self._tokens), re.IGNORECASE)

    def __contains__(self, token) -> bool:
        return token is not None and self._index_of(str(token)) is not None

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._tokens))

    def __repr__(self) -> str:
        return f"BlacklistStore({self._tokens!r})"


def strip_literals(statement: str) -> str:
    """合并空白并去掉单引号、双引号包裹的字符串字面量"""
    s = _WHITESPACE.sub(" ", statement)
    return _STRING_LITERAL.sub("", s)


def scan_statement(statement: str, blacklist: Optional[BlacklistStore]) -> None:
    """
    扫描语句中是否含有黑名单子句

    字符串字面量中的内容不参与匹配，例如 WHERE name = 'DROP TABLE' 可以通过

    Raises:
        BlacklistedClause: 字面量之外出现了黑名单项
    """
    if blacklist is None:
        return

    pattern = blacklist.pattern()
    if pattern is None:
        return

    m = pattern.search(strip_literals(statement))
    if m:
        logger.warning(f"语句包含黑名单子句: {m.group(0)!r}")
        raise BlacklistedClause(data={"token": m.group(0)})
