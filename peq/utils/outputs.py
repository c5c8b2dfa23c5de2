"""
输出格式化工具模块

提供迭代诊断表 (Outputter) 与结果格式化功能。
"""

import sys
from typing import Dict, Any, List, Sequence
import json

from peq.core.types import OutputOptions


class Outputter:
    """迭代诊断表输出器

    先通过 add_entry/add_entries 声明列，再逐行 add_value/add_values
    并调用 output_state 输出一行。所有行同时记录在 history 中。
    """

    def __init__(self, options: OutputOptions = OutputOptions()):
        self.options = options
        self.entries: List[str] = []
        self.values: List[Any] = []
        self.history: List[Dict[str, Any]] = []

    @property
    def active(self) -> bool:
        return self.options.active

    def add_entry(self, name: str):
        self.entries.append(name)

    def add_entries(self, prefix: str, size: int, names: Sequence[str] = ()):
        """添加一组列；names 长度不符时使用 prefix[i] 命名"""
        if len(names) == size:
            self.entries.extend(names)
        else:
            self.entries.extend(f"{prefix}[{i}]" for i in range(size))

    def add_value(self, value: Any):
        self.values.append(value)

    def add_values(self, values):
        self.values.extend(float(v) for v in values)

    def _format(self, value: Any) -> str:
        w = self.options.width
        if isinstance(value, float):
            return f"{value:>{w}.{self.options.precision}e}"
        return f"{str(value):>{w}}"

    def _print(self, line: str):
        print(line, file=self.options.stream or sys.stdout)

    def output_header(self):
        if not self.active:
            return
        header = " | ".join(self._format(e) for e in self.entries)
        self._print("-" * len(header))
        self._print(header)
        self._print("-" * len(header))

    def output_state(self):
        """输出当前行并清空缓冲"""
        if self.active:
            self.history.append(dict(zip(self.entries, self.values)))
            self._print(" | ".join(self._format(v) for v in self.values))
        self.values = []


def format_results(
    result: Any,
    format_type: str = 'dict',
    precision: int = 4
) -> Any:
    """格式化计算结果

    Args:
        result: 计算结果对象 (NamedTuple、dataclass 或 dict)
        format_type: 输出格式 ('dict', 'json', 'table')
        precision: 数值精度

    Returns:
        格式化后的结果
    """
    # 转换为字典
    if hasattr(result, '_asdict'):
        data = result._asdict()
    elif hasattr(result, '__dict__'):
        data = vars(result)
    else:
        data = dict(result) if isinstance(result, dict) else {'value': result}

    # 格式化数值
    def format_value(v):
        if isinstance(v, float):
            return round(v, precision)
        elif isinstance(v, dict):
            return {k: format_value(vv) for k, vv in v.items()}
        elif isinstance(v, (list, tuple)):
            return [format_value(vv) for vv in v]
        elif hasattr(v, 'tolist'):
            return format_value(v.tolist())
        elif hasattr(v, '__dict__'):
            return {k: format_value(vv) for k, vv in vars(v).items()}
        else:
            return v

    formatted = {k: format_value(v) for k, v in data.items()}

    if format_type == 'json':
        return json.dumps(formatted, indent=2, ensure_ascii=False)
    elif format_type == 'table':
        return _format_as_table(formatted)
    elif format_type == 'dict':
        return formatted
    raise ValueError(f"Unknown format type: {format_type!r}. Available: ['dict', 'json', 'table']")


def _format_as_table(data: Dict) -> str:
    """将字典格式化为表格字符串"""
    lines = []
    max_key_len = max(len(str(k)) for k in data.keys())

    for key, value in data.items():
        if isinstance(value, dict):
            lines.append(f"{key}:")
            for k, v in value.items():
                lines.append(f"  {k}: {v}")
        else:
            lines.append(f"{key.ljust(max_key_len)}: {value}")

    return '\n'.join(lines)
