"""
StdError — 标准化错误类型，也是 normalize() 的输出单元。

StdError 是一个普通的 Exception 子类，额外提供：

- 固定的核心字段：name / message / stack / cause / errors（只读属性）
- metadata 字典：其余所有字段；属性访问会回退到它（err.code）
- to_text() / to_structured() / to_json()：从构造起就存在的普通方法

示例::

    error = StdError(
        "Operation failed",
        cause=StdError("Network timeout"),
        code="ERR_TIMEOUT",
        status_code=408,
    )
    print(error.to_text())
    json.dumps(error, default=json_default)

# [Design Decision] 元数据不会成为真正的实例属性。
# __getattr__ 只在正常属性查找失败后才被调用，
# 所以元数据永远无法遮盖 name、to_text 之类的真实属性或方法。

# [Design Decision] 每个实例的渲染上限（max_depth 等）保存在按对象身份
# 索引的弱引用旁表中，而不是实例字段：枚举元数据时永远不会泄漏它们。
"""

from __future__ import annotations

import builtins
import json
import weakref
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from errnorm.config.defaults import DEFAULT_ERROR_NAME, MAX_ARRAY_LENGTH, MAX_PROPERTIES
from errnorm.config.loader import get_default_options, resolve_options
from errnorm.engine.classify import MISSING, RecordView, text_form
from errnorm.engine.metadata import copy_metadata, warn_truncation
from errnorm.render.structured import render_structured
from errnorm.render.text import render_text

# 构造参数中被显式处理、不进入元数据的键
_CONSTRUCTOR_KEYS = frozenset({
    "name",
    "message",
    "cause",
    "errors",
    "stack",
    "max_depth",
    "max_properties",
    "max_array_length",
})


@dataclass(frozen=True)
class RenderLimits:
    """单个 StdError 实例的渲染上限；None 表示渲染时读取进程级默认值。"""

    max_depth: int | None = None
    max_properties: int | None = None
    max_array_length: int | None = None


# StdError 实例 → RenderLimits
_INSTANCE_LIMITS: weakref.WeakKeyDictionary[StdError, RenderLimits] = weakref.WeakKeyDictionary()


class StdError(RecordView, Exception):
    """
    标准化错误。

    参数:
        message: 错误消息（非 str 会被转为文本）
        name: 错误名称，默认 "Error"
        cause: 导致本错误的错误
        errors: 子错误列表或按键索引的子错误字典
        stack: 显式指定的 stack 文本
        max_depth: 本实例渲染时的最大深度
        max_properties: 本实例复制/渲染的最大键数量
        max_array_length: 本实例复制/渲染的最大序列长度
        metadata: 额外的元数据字典（可包含非 str 键）
        **extra: 额外的元数据
    """

    def __init__(
        self,
        message: Any = "",
        *,
        name: str | None = None,
        cause: Any = None,
        errors: Any = None,
        stack: str | None = None,
        max_depth: int | None = None,
        max_properties: int | None = None,
        max_array_length: int | None = None,
        metadata: Mapping[Any, Any] | None = None,
        **extra: Any,
    ) -> None:
        message = text_form(message)
        super().__init__(message)

        limits = RenderLimits(max_depth, max_properties, max_array_length)
        _validate_limits(limits)
        _INSTANCE_LIMITS[self] = limits

        self._name = text_form(name) if name else DEFAULT_ERROR_NAME
        self._message = message
        self._cause = cause
        self._errors = list(errors) if isinstance(errors, (tuple, set, frozenset)) else errors
        self._stack = text_form(stack) if stack is not None else None
        self.metadata: dict[Any, Any] = {}

        source: dict[Any, Any] = dict(metadata) if metadata else {}
        source.update(extra)
        if source:
            array_limit = max_array_length if max_array_length is not None else MAX_ARRAY_LENGTH
            copy_metadata(
                source,
                self.metadata,
                exclude=_CONSTRUCTOR_KEYS,
                max_properties=max_properties if max_properties is not None else MAX_PROPERTIES,
                convert_opaque_keys=False,
                transform=lambda value: _bound_sequence(value, array_limit),
            )

    # === 核心字段 ===

    @property
    def name(self) -> str:
        return self._name

    @property
    def message(self) -> str:
        return self._message

    @property
    def cause(self) -> Any:
        return self._cause

    @property
    def errors(self) -> Any:
        return self._errors

    @property
    def stack(self) -> str | None:
        return self._stack

    @property
    def render_limits(self) -> RenderLimits:
        """本实例的渲染上限（未设置的字段为 None）。"""
        return _INSTANCE_LIMITS.get(self, RenderLimits())

    @property
    def max_depth(self) -> int:
        """本实例渲染时实际使用的最大深度。"""
        limit = self.render_limits.max_depth
        return limit if limit is not None else get_default_options().max_depth

    # === 元数据回退 ===

    def __getattr__(self, item: str) -> Any:
        if item.startswith("_"):
            raise AttributeError(item)
        metadata = self.__dict__.get("metadata")
        if metadata is not None and item in metadata:
            return metadata[item]
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {item!r}")

    def _own_keys(self) -> list[Any]:
        keys: list[Any] = ["name", "message"]
        if self._stack is not None:
            keys.append("stack")
        if self._cause is not None:
            keys.append("cause")
        if self._errors is not None:
            keys.append("errors")
        keys.extend(self.metadata)
        return keys

    def _get_own(self, key: Any) -> Any:
        if key == "name":
            return self._name
        if key == "message":
            return self._message
        if key == "stack":
            return self._stack if self._stack is not None else MISSING
        if key == "cause":
            return self._cause if self._cause is not None else MISSING
        if key == "errors":
            return self._errors if self._errors is not None else MISSING
        return self.metadata.get(key, MISSING)

    # === 渲染 ===

    def to_text(self) -> str:
        """
        返回人类可读的多行文本，包含元数据、cause 链和子错误。

        示例::

            Error: DB Error
              code: 'E_DB'
              [cause]: Error: Connection failed
        """
        limits = self.render_limits
        return render_text(
            self,
            max_depth=limits.max_depth,
            max_properties=limits.max_properties,
        )

    def to_structured(self) -> dict[str, Any]:
        """返回只包含 str/int/float/bool/None/list/dict 的结构化形式。"""
        limits = self.render_limits
        return render_structured(
            self,
            max_depth=limits.max_depth,
            max_properties=limits.max_properties,
            max_array_length=limits.max_array_length,
        )

    def to_json(self, **kwargs: Any) -> str:
        """序列化为 JSON 字符串；kwargs 透传给 json.dumps。"""
        return json.dumps(self.to_structured(), **kwargs)

    def __str__(self) -> str:
        return self._message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, message={self._message!r})"


_ExceptionGroup: type | None = getattr(builtins, "ExceptionGroup", None)

if _ExceptionGroup is not None:

    class StdExceptionGroup(StdError, _ExceptionGroup):  # type: ignore[misc,valid-type]
        """
        基于原生 ExceptionGroup 的多错误 StdError。

        exceptions 为原生的子异常元组，errors 为同样内容的列表。
        子错误列表不能为空（原生 ExceptionGroup 的约束）。
        """

        def __new__(cls, message: Any, exceptions: Sequence[BaseException], **kwargs: Any) -> StdExceptionGroup:
            return super().__new__(cls, message, exceptions)

        def __init__(self, message: Any, exceptions: Sequence[BaseException], **kwargs: Any) -> None:
            super().__init__(message, errors=list(exceptions), **kwargs)

else:  # pragma: no cover - Python < 3.11
    StdExceptionGroup = None  # type: ignore[assignment,misc]


def json_default(obj: Any) -> Any:
    """
    供 json.dumps(default=...) 使用的钩子。

    示例::

        json.dumps({"error": normalize(exc)}, default=json_default)
    """
    if isinstance(obj, StdError):
        return obj.to_structured()
    if isinstance(obj, BaseException):
        return render_structured(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _validate_limits(limits: RenderLimits) -> None:
    fields = {key: value for key, value in vars(limits).items() if value is not None}
    if fields:
        resolve_options(None, fields)


def _bound_sequence(value: Any, limit: int) -> Any:
    if isinstance(value, (list, tuple)) and len(value) > limit:
        warn_truncation("max_array_length", len(value), limit, what="序列元素")
        return list(value[:limit])
    return value
