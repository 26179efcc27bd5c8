"""
形状归一化器 — normalize() 的实现。

把任意输入转换为规范的 StdError 树：

    原始值/不透明值   → 包装为 StdError（None/UNDEFINED 使用固定消息）
    可调用对象        → 包装为描述文本
    序列              → 视为 {"name": "ExceptionGroup", "errors": [...]}
    异常/记录         → 逐字段归一化：cause、errors、name、message、stack，
                        最后复制元数据

对任何形状的输入都不会抛出异常。唯一的例外是非法的 Options
（程序员错误）以及资源耗尽类异常。

# [Design Decision] errors 有三种互斥形态：数组、字典（普通记录）、
# 单个值。单个值会被包装成单元素数组，此时 name/message 强制为
# "ExceptionGroup"，与原生多错误容器的约定一致。
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from errnorm.config.defaults import (
    AGGREGATE_ERROR_NAME,
    CIRCULAR_MARKER,
    DEFAULT_ERROR_NAME,
    ERROR_FIELDS,
    FALLBACK_MESSAGE,
    NULL_MESSAGE,
    UNDEFINED_MESSAGE,
)
from errnorm.config.loader import resolve_options
from errnorm.config.schema import NormalizeOptions
from errnorm.engine.classify import (
    MISSING,
    RESOURCE_EXHAUSTION,
    UNDEFINED,
    ValueKind,
    classify,
    describe_callable,
    error_field,
    text_form,
    to_builtin,
)
from errnorm.engine.construct import ErrorsMode, build_error
from errnorm.engine.guards import VisitedSet, at_limit, depth_marker
from errnorm.engine.metadata import copy_metadata, custom_keys, safe_get, safe_list, warn_truncation
from errnorm.std_error import StdError

logger = logging.getLogger(__name__)


def normalize(
    value: Any,
    options: NormalizeOptions | Mapping[str, Any] | None = None,
    /,
    **overrides: Any,
) -> StdError:
    """
    把任意值归一化为 StdError。

    参数:
        value: 任意输入（异常、字典、对象、原始值、序列……）
        options: NormalizeOptions 或字典；None 时使用进程级默认值
        **overrides: 逐字段覆盖 Options

    返回:
        StdError 实例（开启子类保留时可能同时是原生异常子类的实例）

    异常:
        OptionsValidationError: Options 不合法

    示例::

        try:
            fetch_user(42)
        except Exception as exc:
            err = normalize(exc, max_depth=4)
            logger.error(err.to_text())
    """
    resolved = resolve_options(options, overrides)
    try:
        return _Normalizer(resolved).normalize_root(value)
    except RESOURCE_EXHAUSTION:
        raise
    except Exception:
        logger.warning("归一化过程中出现意外异常，返回兜底错误", exc_info=True)
        return StdError(FALLBACK_MESSAGE)


def primitive_to_error(value: Any, options: NormalizeOptions, stack: str | None = None) -> StdError:
    """把原始值或不透明值包装为 StdError。"""
    if value is None:
        message = NULL_MESSAGE
    elif value is UNDEFINED:
        message = UNDEFINED_MESSAGE
    else:
        message = text_form(value)
    return build_error(DEFAULT_ERROR_NAME, message, stack=stack, options=options)


class _Normalizer:
    """单次 normalize() 调用的状态：Options 与已访问集合。"""

    def __init__(self, options: NormalizeOptions) -> None:
        self.options = options
        self.visited = VisitedSet()

    def normalize_root(self, value: Any) -> StdError:
        options = self.options
        stack = options.original_stack
        kind = classify(value)

        if kind in (ValueKind.PRIMITIVE, ValueKind.OPAQUE_KEY):
            return primitive_to_error(value, options, stack)
        if kind is ValueKind.CALLABLE:
            return build_error(DEFAULT_ERROR_NAME, describe_callable(value), stack=stack, options=options)

        self.visited.enter(value)
        if kind is ValueKind.SEQUENCE:
            return self._normalize_record(_aggregate_seed(value), 0, stack=stack)
        return self._normalize_record(value, 0, stack=stack)

    def _normalize_to_error(self, value: Any, depth: int) -> StdError:
        """把 cause 或 errors 的元素归一化为 StdError。"""
        options = self.options
        if at_limit(depth, options.max_depth):
            return StdError(depth_marker(options.max_depth))

        kind = classify(value)
        if kind in (ValueKind.PRIMITIVE, ValueKind.OPAQUE_KEY):
            return primitive_to_error(value, options)
        if kind is ValueKind.CALLABLE:
            return build_error(DEFAULT_ERROR_NAME, describe_callable(value), options=options)
        if self.visited.enter(value):
            return StdError(CIRCULAR_MARKER)
        if kind is ValueKind.SEQUENCE:
            return self._normalize_record(_aggregate_seed(value), depth)
        return self._normalize_record(value, depth)

    def _normalize_record(self, source: Any, depth: int, stack: str | None = None) -> StdError:
        """
        归一化一个错误形状或普通记录。

        参数:
            source: 记录（调用方已完成环检测登记）
            depth: 当前深度
            stack: 显式指定的 stack；None 时读取 source 自身的 stack
        """
        options = self.options
        if at_limit(depth, options.max_depth):
            return StdError(depth_marker(options.max_depth))

        # --- cause ---
        cause: StdError | None = None
        raw_cause = error_field(source, "cause")
        if raw_cause is not MISSING and raw_cause is not None and raw_cause is not UNDEFINED:
            cause = self._normalize_to_error(raw_cause, depth + 1)

        # --- errors ---
        mode, errors = self._normalize_errors(error_field(source, "errors"), depth)

        # --- name / message ---
        raw_name = error_field(source, "name")
        if raw_name is not MISSING and raw_name:
            name = text_form(raw_name)
        elif mode is ErrorsMode.SINGLE:
            name = AGGREGATE_ERROR_NAME
        else:
            name = DEFAULT_ERROR_NAME
        name = name or DEFAULT_ERROR_NAME

        if mode is ErrorsMode.SINGLE:
            message = AGGREGATE_ERROR_NAME
        else:
            message = self._message_text(error_field(source, "message"), depth)

        # --- stack ---
        if stack is None:
            raw_stack = error_field(source, "stack")
            if raw_stack is not MISSING and raw_stack is not None:
                stack = text_form(raw_stack)

        error = build_error(
            name,
            message,
            mode=mode,
            cause=cause,
            errors=errors,
            stack=stack,
            options=options,
        )

        copy_metadata(
            source,
            error.metadata,
            exclude=ERROR_FIELDS,
            max_properties=options.max_properties,
            include_hidden=options.include_hidden,
            convert_opaque_keys=options.convert_opaque_keys,
            transform=lambda item: self._metadata_value(item, depth + 1),
        )
        return error

    def _normalize_errors(self, raw: Any, depth: int) -> tuple[ErrorsMode, Any]:
        if raw is MISSING or raw is None or raw is UNDEFINED:
            return ErrorsMode.NONE, None

        options = self.options
        kind = classify(raw)

        if kind is ValueKind.SEQUENCE:
            items = safe_list(raw)
            if items is MISSING:
                return ErrorsMode.NONE, None
            if len(items) > options.max_array_length:
                warn_truncation("max_array_length", len(items), options.max_array_length, what="子错误")
                items = items[:options.max_array_length]
            return ErrorsMode.ARRAY, [self._normalize_to_error(item, depth + 1) for item in items]

        if kind is ValueKind.PLAIN_RECORD:
            keys = custom_keys(raw)
            if len(keys) > options.max_properties:
                warn_truncation("max_properties", len(keys), options.max_properties, what="子错误")
                keys = keys[:options.max_properties]
            mapped: dict[str, StdError] = {}
            for key in keys:
                item = safe_get(raw, key)
                if item is MISSING or callable(item):
                    continue
                mapped[text_form(key)] = self._normalize_to_error(item, depth + 1)
            return ErrorsMode.MAP, mapped

        return ErrorsMode.SINGLE, [self._normalize_to_error(raw, depth + 1)]

    def _message_text(self, raw: Any, depth: int) -> str:
        if raw is MISSING or raw is None or raw is UNDEFINED:
            return ""
        if classify(raw) in (ValueKind.PRIMITIVE, ValueKind.OPAQUE_KEY, ValueKind.CALLABLE):
            return text_form(raw)
        return text_form(self._normalize_value(raw, depth + 1))

    def _metadata_value(self, value: Any, depth: int) -> Any:
        kind = classify(value)
        if kind is ValueKind.PRIMITIVE:
            return to_builtin(value)
        if kind is ValueKind.OPAQUE_KEY:
            return text_form(value)
        return self._normalize_value(value, depth)

    def _normalize_value(self, value: Any, depth: int) -> Any:
        """
        归一化任意嵌套值。

        普通数据保持为 list/dict，错误形状的数据成为 StdError。
        """
        options = self.options
        if at_limit(depth, options.max_depth):
            return depth_marker(options.max_depth)

        kind = classify(value)
        if kind is ValueKind.PRIMITIVE:
            return to_builtin(value)
        if kind is ValueKind.OPAQUE_KEY:
            return text_form(value)
        if kind is ValueKind.CALLABLE:
            return describe_callable(value)
        if self.visited.enter(value):
            return CIRCULAR_MARKER

        if kind is ValueKind.SEQUENCE:
            items = safe_list(value)
            if items is MISSING:
                return text_form(value)
            if len(items) > options.max_array_length:
                warn_truncation("max_array_length", len(items), options.max_array_length, what="序列元素")
                items = items[:options.max_array_length]
            return [self._normalize_value(item, depth + 1) for item in items]

        if kind is ValueKind.ERROR_SHAPED:
            return self._normalize_record(value, depth)

        result: dict[Any, Any] = {}
        copy_metadata(
            value,
            result,
            max_properties=options.max_properties,
            include_hidden=options.include_hidden,
            convert_opaque_keys=options.convert_opaque_keys,
            transform=lambda item: self._metadata_value(item, depth + 1),
        )
        return result


def _aggregate_seed(items: Any) -> dict[str, Any]:
    return {"name": AGGREGATE_ERROR_NAME, "message": AGGREGATE_ERROR_NAME, "errors": items}
