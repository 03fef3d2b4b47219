"""
HTML 表格渲染
将查询结果渲染为带交替行样式的 HTML 表格，可选分页链接

单元格内容和表头都会做 HTML 转义
"""

import html
import logging
from typing import List, Optional, Union

from ..core.pagination import PageResult, Paginator, build_page_url, ensure_unpaginated

logger = logging.getLogger(__name__)

BG_COLOR = "#CCC"
ROW_COLOR_ODD = "#F9F9F9"
ROW_COLOR_EVEN = "#F0F0F0"
HEADER_COLOR = "#9C9C9C"


class HtmlTableRenderer:
    """
    HTML 表格渲染器

    Usage:
        renderer = HtmlTableRenderer(gate)
        html = renderer.render("SELECT * FROM users", paginate_at=20, page=request.query_params.get("pg"),
                               request_uri=str(request.url))
    """

    def __init__(
        self,
        gate,
        pg_query_name: str = "pg",
        use_default_styles: bool = True,
        max_page_size: int = 1000
    ):
        self.gate = gate
        self.pg_query_name = pg_query_name
        self.use_default_styles = use_default_styles
        self.paginator = Paginator(max_page_size=max_page_size)

    def _style(self, css: str) -> str:
        return f' style="{css}"' if self.use_default_styles else ""

    def render(
        self,
        statement: str,
        paginate_at: int = 0,
        page: Union[int, str, None] = 1,
        request_uri: str = ""
    ) -> str:
        """
        渲染语句的查询结果

        Args:
            statement: 查询语句（分页时不能包含 LIMIT / OFFSET）
            paginate_at: 每页行数，0 表示不分页
            page: 当前页码（通常来自请求参数）
            request_uri: 当前请求地址，用于生成分页链接

        Raises:
            PaginationInvalid: 分页语句包含 LIMIT / OFFSET，或每页行数不合法
            BlacklistedClause: 语句含有黑名单子句
        """
        result: Optional[PageResult] = None

        if paginate_at:
            ensure_unpaginated(statement)

        rowset = self.gate.execute_rowset(statement)

        if paginate_at:
            params = self.paginator.resolve(page, paginate_at, rowset.row_count)
            rowset_page = self.gate.execute_rowset(self.paginator.paginate_statement(statement, params))
            result = PageResult.create(rowset_page.rows, rowset.row_count, params.page, params.page_size)
            columns, rows = rowset_page.columns or rowset.columns, rowset_page.rows
        else:
            columns, rows = rowset.columns, rowset.rows

        out = [self._table(columns, rows)]
        if result is not None and result.total_pages > 1:
            out.append(self._pagination(result, request_uri))
        return "".join(out)

    def _table(self, columns: List[str], rows: List[tuple]) -> str:
        lines = [
            f'<table class="SqlGateTable"{self._style(f"width:100%; background-color:{BG_COLOR}; text-align:center")}>',
            f'<tr class="headerRow"{self._style(f"padding:3px 12px; background-color:{HEADER_COLOR}")}>',
        ]
        for i, name in enumerate(columns, 1):
            lines.append(f'<td class="col{i}">{html.escape(str(name))}</td>')
        lines.append("</tr>")

        for row_num, row in enumerate(rows, 1):
            odd = row_num % 2 == 1
            color = ROW_COLOR_ODD if odd else ROW_COLOR_EVEN
            row_class = "oddRow" if odd else "evenRow"
            lines.append(
                f'<tr class="row{row_num} {row_class}"{self._style(f"padding:3px 12px; background-color:{color};")}>'
            )
            for i, value in enumerate(row, 1):
                cell = "" if value is None else html.escape(str(value))
                lines.append(f'<td class="col{i}">{cell}</td>')
            lines.append("</tr>")

        lines.append("</table>")
        return "\n".join(lines)

    def _link(self, request_uri: str, page: int, label: str) -> str:
        href = html.escape(build_page_url(request_uri, self.pg_query_name, page))
        return f'<a href="{href}">{label}</a>'

    def _pagination(self, result: PageResult, request_uri: str) -> str:
        parts = ['\n<p class="SqlGatePagination">']
        parts.append(self._link(request_uri, result.page - 1, "&lt;") if result.has_prev else "&lt;")
        for i in range(1, result.total_pages + 1):
            parts.append(str(i) if i == result.page else self._link(request_uri, i, str(i)))
        parts.append(self._link(request_uri, result.page + 1, "&gt;") if result.has_next else "&gt;")
        parts.append("</p>\n")
        return "\n".join(parts)
