"""
统一分页工具
为 HTML 渲染等结果展示提供分页参数、页码计算、LIMIT/OFFSET 拼接和页码链接
"""

import math
import re
from typing import Any, List, Optional, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field

from .errors import PaginationInvalid

_LIMIT_OR_OFFSET = re.compile(r"limit|offset", re.I)


class PaginationParams(BaseModel):
    """分页参数"""
    page: int = Field(default=1, ge=1, description="页码，从1开始")
    page_size: int = Field(default=20, ge=1, description="每页数量")

    @property
    def offset(self) -> int:
        """计算偏移量"""
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        """获取限制数量"""
        return self.page_size


class PageResult(BaseModel):
    """一页查询结果，供 HTML 渲染生成页码链接"""
    items: List[Any] = Field(description="当前页的行")
    total: int = Field(description="语句的总行数")
    page: int = Field(description="当前页码")
    page_size: int = Field(description="每页数量")
    total_pages: int = Field(description="总页数")
    has_next: bool = Field(description="是否有下一页")
    has_prev: bool = Field(description="是否有上一页")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def create(
        cls,
        items: List[Any],
        total: int,
        page: int,
        page_size: int
    ) -> "PageResult":
        """创建分页结果"""
        total_pages = math.ceil(total / page_size) if page_size > 0 else 0
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1
        )


class Paginator:
    """
    分页器

    Usage:
        paginator = Paginator(max_page_size=50)
        params = paginator.resolve(page="3", page_size=10, total=95)
        sql = paginator.paginate_statement("SELECT * FROM t", params)
    """

    def __init__(self, default_page_size: int = 20, max_page_size: int = 1000):
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    @staticmethod
    def parse_page(page: Union[int, str, None]) -> int:
        """解析页码，无法解析时视为第 1 页"""
        try:
            return max(int(page), 1)
        except (TypeError, ValueError):
            return 1

    def resolve(
        self,
        page: Union[int, str, None],
        page_size: Optional[int],
        total: int
    ) -> PaginationParams:
        """
        根据总记录数规范化分页参数

        页码超过总页数时取最后一页

        Raises:
            PaginationInvalid: 每页数量不在 1..max_page_size 之间
        """
        if page_size is None:
            page_size = self.default_page_size
        if page_size < 1 or page_size > self.max_page_size:
            raise PaginationInvalid(
                message=f"每页数量必须在 1 到 {self.max_page_size} 之间",
                data={"page_size": page_size}
            )

        page = self.parse_page(page)
        total_pages = math.ceil(total / page_size) if total > 0 else 1
        if page > total_pages:
            page = total_pages

        return PaginationParams(page=page, page_size=page_size)

    @staticmethod
    def paginate_statement(statement: str, params: PaginationParams) -> str:
        """
        为语句追加 LIMIT/OFFSET

        Raises:
            PaginationInvalid: 语句本身已含有 LIMIT 或 OFFSET
        """
        ensure_unpaginated(statement)
        return f"{statement} LIMIT {params.limit} OFFSET {params.offset}"


def ensure_unpaginated(statement: str) -> None:
    """分页语句不能自带 LIMIT/OFFSET（按子串匹配，不区分大小写）"""
    if _LIMIT_OR_OFFSET.search(statement):
        raise PaginationInvalid()


def build_page_url(request_uri: str, query_name: str, page: int) -> str:
    """
    生成指向某一页的链接

    保留原有查询参数，原地替换页码参数，没有时追加到末尾
    """
    parts = urlsplit(request_uri or "")
    query = []
    replaced = False
    for k, v in parse_qsl(parts.query, keep_blank_values=True):
        if k == query_name:
            if replaced:
                continue
            v = str(page)
            replaced = True
        query.append((k, v))
    if not replaced:
        query.append((query_name, str(page)))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))
