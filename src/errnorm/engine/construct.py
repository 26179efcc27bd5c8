"""
规范错误构造器 — 决定用哪一种方式实例化归一化后的错误。

按优先级依次尝试四种构造状态，任何一步失败都静默降级到下一步：

1. SUBCLASSED: 开启子类保留且 name 能解析到异常类型 →
   实例化一个同时继承 StdError 和该异常类型的类
2. NATIVE_MULTI_ERROR: errors 为数组/单个形态且运行时支持 ExceptionGroup →
   StdExceptionGroup
3. NATIVE_CAUSAL: 存在 cause 且运行时支持原生因果链 → StdError 并链接 __cause__
4. PLAIN_FALLBACK: 普通 StdError，cause/errors 只作为普通字段

示例::

    @register_error_type
    class PaymentDeclined(Exception):
        pass

    err = normalize({"name": "PaymentDeclined", "message": "card expired"},
                    enable_subclass_preservation=True)
    isinstance(err, PaymentDeclined)  # True
"""

from __future__ import annotations

import builtins
import logging
from enum import Enum
from typing import Any

from errnorm.capabilities import HAS_EXCEPTION_GROUPS, HAS_NATIVE_CAUSE
from errnorm.config.schema import NormalizeOptions
from errnorm.std_error import StdError, StdExceptionGroup

logger = logging.getLogger(__name__)


class ConstructionState(str, Enum):
    """构造路径，按优先级排列。"""

    SUBCLASSED = "subclassed"
    NATIVE_MULTI_ERROR = "native_multi_error"
    NATIVE_CAUSAL = "native_causal"
    PLAIN_FALLBACK = "plain_fallback"


class ErrorsMode(str, Enum):
    """归一化后 errors 字段的形态。"""

    ARRAY = "array"
    MAP = "map"
    SINGLE = "single"
    NONE = "none"


# 用户注册的异常类型：name → 类型
_error_types: dict[str, type[Exception]] = {}

# 原生异常类型 → 同时继承 StdError 的混合类型
_hybrid_types: dict[type[Exception], type[StdError]] = {}


def register_error_type(cls: type[Exception], name: str | None = None) -> type[Exception]:
    """
    注册一个可被子类保留使用的异常类型。

    可以直接当装饰器使用。

    参数:
        cls: Exception 的子类
        name: 注册名，默认为类名

    异常:
        TypeError: cls 不是 Exception 的子类
    """
    if not (isinstance(cls, type) and issubclass(cls, Exception)):
        raise TypeError(f"register_error_type() 需要 Exception 的子类，实际为 {cls!r}")
    _error_types[name or cls.__name__] = cls
    return cls


def unregister_error_type(name: str) -> type[Exception] | None:
    """取消注册；返回被移除的类型（不存在时为 None）。"""
    cls = _error_types.pop(name, None)
    if cls is not None:
        _hybrid_types.pop(cls, None)
    return cls


def resolve_error_type(name: str) -> type[Exception] | None:
    """
    按名称查找异常类型：先查注册表，再查内置异常。

    ExceptionGroup 系列永远不会被返回：多错误由 NATIVE_MULTI_ERROR 路径处理。
    """
    candidate = _error_types.get(name)
    if candidate is None:
        candidate = getattr(builtins, name, None)
    if not (isinstance(candidate, type) and issubclass(candidate, Exception)):
        return None
    if _is_group_type(candidate):
        return None
    return candidate


def _is_group_type(cls: type) -> bool:
    group = getattr(builtins, "BaseExceptionGroup", None)
    return group is not None and issubclass(cls, group)


def _hybrid_type(native: type[Exception]) -> type[StdError]:
    if issubclass(native, StdError):
        return native
    hybrid = _hybrid_types.get(native)
    if hybrid is None:
        hybrid = type(
            native.__name__,
            (StdError, native),
            {"__module__": __name__, "__qualname__": native.__name__},
        )
        _hybrid_types[native] = hybrid
    return hybrid


def build_error(
    name: str,
    message: str,
    *,
    mode: ErrorsMode = ErrorsMode.NONE,
    cause: Any = None,
    errors: Any = None,
    stack: str | None = None,
    options: NormalizeOptions,
) -> StdError:
    """
    构造规范错误实例。

    参数:
        name: 已确定的错误名称
        message: 已确定的错误消息
        mode: errors 的形态
        cause: 已归一化的 cause（或 None）
        errors: 已归一化的子错误（列表、字典或 None）
        stack: 要保留的 stack 文本
        options: 本次调用的 Options

    返回:
        StdError（或其子类）实例；元数据由调用方随后复制
    """
    fields: dict[str, Any] = {
        "name": name,
        "cause": cause,
        "stack": stack,
        "max_depth": options.max_depth,
        "max_properties": options.max_properties,
        "max_array_length": options.max_array_length,
    }

    error: StdError | None = None
    state = ConstructionState.PLAIN_FALLBACK

    if options.enable_subclass_preservation:
        native = resolve_error_type(name)
        if native is not None:
            try:
                error = _hybrid_type(native)(message, errors=errors, **fields)
                state = ConstructionState.SUBCLASSED
            except Exception:
                logger.debug("无法以 %s 构造子类实例，降级处理", name, exc_info=True)
                error = None

    if (
        error is None
        and mode in (ErrorsMode.ARRAY, ErrorsMode.SINGLE)
        and options.use_native_multi_error
        and HAS_EXCEPTION_GROUPS
        and StdExceptionGroup is not None
    ):
        try:
            error = StdExceptionGroup(message, errors, **fields)
            state = ConstructionState.NATIVE_MULTI_ERROR
        except (TypeError, ValueError):
            logger.debug("无法构造原生 ExceptionGroup，降级处理", exc_info=True)
            error = None

    native_cause = options.use_native_causal_chain and HAS_NATIVE_CAUSE
    if error is None:
        error = StdError(message, errors=errors, **fields)
        if cause is not None and native_cause:
            state = ConstructionState.NATIVE_CAUSAL

    if state is not ConstructionState.PLAIN_FALLBACK and native_cause and isinstance(cause, BaseException):
        error.__cause__ = cause

    logger.debug("构造 %s（%s）", name, state.value)
    return error


__all__ = [
    "ConstructionState",
    "ErrorsMode",
    "build_error",
    "register_error_type",
    "resolve_error_type",
    "unregister_error_type",
]
