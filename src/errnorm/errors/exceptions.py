"""
结构化异常体系 — 错误信息即文档。

errnorm 自身的异常非常少：归一化引擎对任何输入都不抛异常，
只有"程序员错误"（非法的 Options、无法读取的配置文件）才会向外抛出。

每条异常遵循"三段式"规范：
1. What went wrong（发生了什么）
2. Why it happened（为什么发生）
3. How to fix it（怎么修）

示例::

    OptionsValidationError(
        what="NormalizeOptions 校验失败（1 个错误）。",
        why="字段 'max_depth': Input should be less than or equal to 100",
        how="max_depth 必须是 1 到 100 之间的整数。",
        field_path="max_depth",
    )
"""

from __future__ import annotations

from typing import Any


class ErrnormError(Exception):
    """
    errnorm 异常基类。

    属性:
        what: 发生了什么
        why: 为什么发生
        how: 怎么修复
        details: 额外的上下文信息（用于调试）
    """

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.what = what
        self.why = why
        self.how = how
        self.details = details or {}

        parts = [what]
        if why:
            parts.append(f"→ 原因：{why}")
        if how:
            parts.append(f"→ 修复建议：{how}")

        self.full_message = "\n".join(parts)
        super().__init__(self.full_message)

    def __str__(self) -> str:
        return self.full_message

    def to_dict(self) -> dict[str, Any]:
        """转换为字典格式，用于 JSON API 响应。"""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "what": self.what,
        }
        if self.why:
            result["why"] = self.why
        if self.how:
            result["how"] = self.how
        if self.details:
            result["details"] = self.details
        return result


# === 配置相关异常 ===


class OptionsValidationError(ErrnormError, ValueError):
    """
    Options 校验异常。

    当 NormalizeOptions 的字段类型或取值不合法时抛出（例如 max_depth=0、
    max_depth="8"）。同时继承 ValueError，方便调用方按标准库习惯捕获。

    # [Design Decision] 非法配置是程序员错误而不是数据形状问题，
    # 所以这里必须严格抛出，而不是像归一化引擎那样静默降级。
    """

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        field_path: str = "",
        **kwargs: Any,
    ) -> None:
        details = {"field_path": field_path}
        details.update(kwargs)
        super().__init__(what=what, why=why, how=how, details=details)
        self.field_path = field_path


class ConfigLoadError(ErrnormError):
    """
    配置文件加载异常。

    当 Options 文件不存在、无法读取或 YAML 格式错误时抛出。
    """

    def __init__(
        self,
        what: str,
        why: str = "",
        how: str = "",
        file_path: str = "",
        **kwargs: Any,
    ) -> None:
        details = {"file_path": file_path}
        details.update(kwargs)
        super().__init__(what=what, why=why, how=how, details=details)
        self.file_path = file_path


# === 截断警告 ===


class TruncationWarning(UserWarning):
    """
    截断警告。

    当记录的键数量超过 max_properties，或序列长度超过 max_array_length 时发出。

    # [Design Decision] 截断使用 Warning 而非 Exception：
    # 截断不是致命错误，遍历会带着截断后的集合继续进行。
    # 开发者可以通过 warnings 模块控制是否将其升级为错误。

    属性:
        limit_name: 触发截断的限制名（max_properties / max_array_length）
        actual: 实际数量
        limit: 限制值
    """

    def __init__(
        self,
        message: str,
        limit_name: str = "",
        actual: int = 0,
        limit: int = 0,
    ) -> None:
        self.limit_name = limit_name
        self.actual = actual
        self.limit = limit
        super().__init__(message)
