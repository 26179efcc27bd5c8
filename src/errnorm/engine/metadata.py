"""
安全元数据复制器。

把源记录中"其余的"自有键复制到目标字典：

1. 结构性保留键（黑名单）永远排除，与调用方的排除集合取并集
2. 可调用值跳过（这是数据归一化库，不是行为调试器）
3. 键数量超过 max_properties 时发出 TruncationWarning 并截断，绝不报错
4. 单个键读取失败（恶意 getter）时跳过该键；资源耗尽类异常重新抛出

# [Design Decision] 黑名单无条件生效：恶意或有缺陷的输入记录
# 不能借助 __class__、__dict__、to_text 之类的键覆盖归一化错误
# 自身的行为或类型身份。
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Callable, Iterable
from typing import Any

from errnorm.config.defaults import ERROR_FIELDS
from errnorm.engine.classify import (
    MISSING,
    RESOURCE_EXHAUSTION,
    UNDEFINED,
    get_own,
    is_dunder,
    own_keys,
    text_form,
)
from errnorm.errors import TruncationWarning

logger = logging.getLogger(__name__)

STRUCTURAL_DENYLIST: frozenset[str] = frozenset({
    # 原型/类型链接
    "__class__",
    "__proto__",
    "__dict__",
    "prototype",
    # 构造函数
    "__init__",
    "__new__",
    "constructor",
    # 渲染方法
    "to_text",
    "to_structured",
    "to_json",
    "__str__",
    "__repr__",
    "__format__",
    "toString",
    "toJSON",
    # 原始值转换
    "__bool__",
    "__int__",
    "__float__",
    "__index__",
    "valueOf",
})


def warn_truncation(limit_name: str, actual: int, limit: int, what: str = "记录") -> None:
    """发出截断诊断（旁路警告，不嵌入输出值）。"""
    message = f"{what}的数量（{actual}）超过 {limit_name}（{limit}），已截断。"
    logger.debug(message)
    warnings.warn(
        TruncationWarning(message, limit_name=limit_name, actual=actual, limit=limit),
        stacklevel=3,
    )


def is_denied(key: Any, exclude: frozenset[Any] = frozenset()) -> bool:
    """键是否必须排除（黑名单、双下划线名称或调用方排除集合）。"""
    if key in exclude:
        return True
    if isinstance(key, str):
        return key in STRUCTURAL_DENYLIST or is_dunder(key)
    return False


def copy_metadata(
    source: Any,
    target: dict[Any, Any],
    *,
    exclude: Iterable[Any] = (),
    max_properties: int,
    include_hidden: bool = True,
    convert_opaque_keys: bool = True,
    transform: Callable[[Any], Any] | None = None,
) -> None:
    """
    把 source 的自有键复制到 target。

    参数:
        source: 源记录（Mapping、异常实例或普通对象）
        target: 目标字典（通常是 StdError.metadata）
        exclude: 额外排除的键（已被显式处理的字段）
        max_properties: 最多复制的键数量
        include_hidden: 是否包含隐藏属性
        convert_opaque_keys: 是否把非 str 键转为文本
        transform: 值转换函数（通常是递归归一化）；返回 MISSING 表示丢弃
    """
    excluded = frozenset(exclude)
    try:
        keys = own_keys(source, include_hidden=include_hidden)
    except RESOURCE_EXHAUSTION:
        raise
    except Exception:
        logger.debug("无法枚举 %s 的自有键，跳过元数据复制", type(source).__name__, exc_info=True)
        return

    keys = [key for key in keys if not is_denied(key, excluded)]
    if len(keys) > max_properties:
        warn_truncation("max_properties", len(keys), max_properties, what="元数据键")
        keys = keys[:max_properties]

    for key in keys:
        try:
            value = get_own(source, key)
            if value is MISSING or value is UNDEFINED or callable(value):
                continue
            if transform is not None:
                value = transform(value)
                if value is MISSING:
                    continue
        except RESOURCE_EXHAUSTION:
            raise
        except Exception:
            logger.debug("读取元数据键 %r 失败，已跳过", key, exc_info=True)
            continue

        out_key = key
        if not isinstance(key, str) and convert_opaque_keys:
            out_key = text_form(key)
            if is_denied(out_key, excluded):
                continue
        target[out_key] = value


def custom_keys(source: Any) -> list[Any]:
    """
    渲染时使用的元数据键：公开的自有键，去掉五个核心字段和黑名单键。
    """
    try:
        keys = own_keys(source, include_hidden=False)
    except RESOURCE_EXHAUSTION:
        raise
    except Exception:
        logger.debug("无法枚举 %s 的自有键", type(source).__name__, exc_info=True)
        return []
    excluded = frozenset(ERROR_FIELDS)
    return [key for key in keys if not is_denied(key, excluded)]


def safe_get(source: Any, key: Any) -> Any:
    """读取一个自有键；失败时返回 MISSING（资源耗尽类异常除外）。"""
    try:
        return get_own(source, key)
    except RESOURCE_EXHAUSTION:
        raise
    except Exception:
        logger.debug("读取键 %r 失败，已跳过", key, exc_info=True)
        return MISSING


def safe_list(value: Any) -> Any:
    """把序列展开为 list；迭代失败时返回 MISSING（资源耗尽类异常除外）。"""
    try:
        return list(value)
    except RESOURCE_EXHAUSTION:
        raise
    except Exception:
        logger.debug("无法迭代 %s，已跳过", type(value).__name__, exc_info=True)
        return MISSING
