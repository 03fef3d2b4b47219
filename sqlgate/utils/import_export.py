"""
数据导出工具
将整张表导出为 JSON 文档 / 文件
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .sql_safety import is_safe_identifier

logger = logging.getLogger(__name__)


class DataExporter:
    """数据导出器"""

    @staticmethod
    def export_to_json(data: Any, indent: Optional[int] = 2) -> str:
        """
        导出数据为 JSON 格式

        无法直接序列化的值（日期、Decimal、bytes 等）转为字符串
        """
        return json.dumps(data, ensure_ascii=False, indent=indent, default=str)


class TableExporter:
    """
    表导出器

    导出内容：
    - sqlgate: 版本号
    - table / colCount / rowCount
    - cols: 列信息
    - rows: 按位置排列的全部行
    """

    def __init__(self, gate):
        self.gate = gate

    @staticmethod
    def file_name(tbl: str, when: Optional[datetime] = None) -> str:
        """导出文件名：MM-DD-YY-<表名>.json"""
        when = when or datetime.now()
        return f"{when:%m-%d-%y}-{tbl}.json"

    def build_document(self, tbl: str) -> Dict[str, Any]:
        """构建导出文档"""
        from .. import __version__

        tbl = self.gate.tbl_check(tbl)
        rowset = self.gate.execute_rowset(f"SELECT * FROM {tbl}")
        cols: List[Dict[str, Any]] = self.gate.run_col_info(tbl)

        return {
            "sqlgate": __version__,
            "table": tbl,
            "colCount": rowset.column_count,
            "rowCount": rowset.row_count,
            "cols": cols,
            "rows": [list(r) for r in rowset.rows],
        }

    def export_to_string(self, tbl: str, pretty_print: bool = False) -> str:
        """导出为 JSON 字符串"""
        return DataExporter.export_to_json(self.build_document(tbl), indent=2 if pretty_print else None)

    def export_to_file(
        self,
        tbl: str,
        pretty_print: bool = False,
        directory: Union[str, Path, None] = ""
    ) -> Path:
        """
        导出为 JSON 文件

        Args:
            tbl: 表名（同时用于文件名，必须是安全标识符）
            pretty_print: 是否缩进输出
            directory: 保存目录，不存在时自动创建；为空时保存在当前目录

        Returns:
            写入的文件路径
        """
        if not is_safe_identifier(tbl):
            logger.warning(f"不安全的表名被拒绝: {tbl!r}")
            raise ValueError(f"不安全的表名: {tbl}")

        content = self.export_to_string(tbl, pretty_print=pretty_print)

        target_dir = Path(directory) if directory else Path(".")
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / self.file_name(tbl)
        path.write_text(content, encoding="utf-8")

        logger.info(f"表 {tbl} 已导出到 {path}")
        return path
