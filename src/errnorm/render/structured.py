"""
结构化序列化器 — 把错误形状的值转换为 JSON 安全的结构。

输出只包含 str / int / float / bool / None / list / dict，
可以直接交给 json.dumps()、日志采集或 API 响应使用。

键的顺序：name、message、stack（存在时）、cause、errors，然后是元数据。
深度、环检测和 errors 形态的规则与文本渲染器一致，
但没有内联摘要：序列和键数量只受 max_array_length / max_properties 限制。
"""

from __future__ import annotations

import logging
import math
from datetime import date, time
from typing import Any

from pydantic import BaseModel

from errnorm.config.defaults import CIRCULAR_MARKER, DEFAULT_ERROR_NAME
from errnorm.config.loader import get_default_options
from errnorm.engine.classify import (
    MISSING,
    RESOURCE_EXHAUSTION,
    UNDEFINED,
    ValueKind,
    classify,
    error_field,
    text_form,
)
from errnorm.engine.guards import VisitedSet, at_limit, depth_marker
from errnorm.engine.metadata import custom_keys, safe_get, safe_list, warn_truncation

logger = logging.getLogger(__name__)


def render_structured(
    value: Any,
    *,
    max_depth: int | None = None,
    max_properties: int | None = None,
    max_array_length: int | None = None,
) -> Any:
    """
    把值转换为 JSON 安全的结构。

    参数:
        value: 通常是 StdError，也可以是任意异常或错误形状的记录
        max_depth: 最大深度；None 时使用进程级默认值
        max_properties: 每条记录最多输出的键数量
        max_array_length: 每个序列最多输出的元素数量

    返回:
        错误形状的输入返回字典；根就是标记时包装为
        {"name": "Error", "message": <标记>}

    示例::

        >>> render_structured(StdError("boom", code=42))
        {'name': 'Error', 'message': 'boom', 'code': 42}
    """
    defaults = get_default_options()
    serializer = _StructuredRenderer(
        max_depth=max_depth if max_depth is not None else defaults.max_depth,
        max_properties=max_properties if max_properties is not None else defaults.max_properties,
        max_array_length=max_array_length if max_array_length is not None else defaults.max_array_length,
    )
    if classify(value) is not ValueKind.ERROR_SHAPED:
        return serializer.value(value, 0)

    result = serializer.error(value, 0)
    if isinstance(result, str):
        return {"name": DEFAULT_ERROR_NAME, "message": result}
    return result


class _StructuredRenderer:
    """单次序列化的状态：上限与已访问集合。"""

    def __init__(self, max_depth: int, max_properties: int, max_array_length: int) -> None:
        self.max_depth = max_depth
        self.max_properties = max_properties
        self.max_array_length = max_array_length
        self.visited = VisitedSet()

    def error(self, error: Any, depth: int) -> dict[str, Any] | str:
        if at_limit(depth, self.max_depth):
            return depth_marker(self.max_depth)
        if self.visited.enter(error):
            return CIRCULAR_MARKER

        result: dict[str, Any] = {
            "name": _field_text(error, "name") or DEFAULT_ERROR_NAME,
            "message": _field_text(error, "message"),
        }

        stack = error_field(error, "stack")
        if stack is not MISSING and stack is not None:
            result["stack"] = text_form(stack)

        cause = error_field(error, "cause")
        if cause is not MISSING and cause is not None:
            result["cause"] = self.value(cause, depth + 1)

        errors = error_field(error, "errors")
        if errors is not MISSING and errors is not None:
            result["errors"] = self.errors(errors, depth + 1)

        keys = custom_keys(error)
        if len(keys) > self.max_properties:
            warn_truncation("max_properties", len(keys), self.max_properties, what="元数据键")
            keys = keys[:self.max_properties]
        for key in keys:
            item = safe_get(error, key)
            if item is MISSING or callable(item):
                continue
            result[text_form(key)] = self.value(item, depth + 1)
        return result

    def errors(self, errors: Any, depth: int) -> Any:
        if at_limit(depth, self.max_depth):
            return depth_marker(self.max_depth)

        kind = classify(errors)
        if kind is ValueKind.SEQUENCE:
            if self.visited.enter(errors):
                return CIRCULAR_MARKER
            items = safe_list(errors)
            if items is MISSING:
                return text_form(errors)
            return [self.value(item, depth) for item in self._bounded(items)]

        if kind is ValueKind.PLAIN_RECORD:
            if self.visited.enter(errors):
                return CIRCULAR_MARKER
            return self._record(errors, depth)

        return self.value(errors, depth)

    def value(self, value: Any, depth: int) -> Any:
        """
        把任意值转换为 JSON 安全的值。

        可调用对象返回 None；在记录中由调用方省略。
        值自身的序列化抛出异常时，退回它的文本形式。
        """
        try:
            return self._convert(value, depth)
        except RESOURCE_EXHAUSTION:
            raise
        except Exception:
            logger.debug("序列化 %s 失败，退回文本形式", type(value).__name__, exc_info=True)
            return text_form(value)

    def _convert(self, value: Any, depth: int) -> Any:
        if at_limit(depth, self.max_depth):
            return depth_marker(self.max_depth)

        if isinstance(value, BaseModel):
            return _dump_model(value)

        kind = classify(value)
        if kind is ValueKind.PRIMITIVE:
            return _json_scalar(value)
        if kind is ValueKind.OPAQUE_KEY:
            return text_form(value)
        if kind is ValueKind.CALLABLE:
            return None
        if kind is ValueKind.ERROR_SHAPED:
            return self.error(value, depth)

        if self.visited.enter(value):
            return CIRCULAR_MARKER

        if kind is ValueKind.SEQUENCE:
            items = safe_list(value)
            if items is MISSING:
                return text_form(value)
            return [self.value(item, depth + 1) for item in self._bounded(items)]
        return self._record(value, depth + 1)

    def _bounded(self, items: list[Any]) -> list[Any]:
        if len(items) > self.max_array_length:
            warn_truncation("max_array_length", len(items), self.max_array_length, what="序列元素")
            items = items[:self.max_array_length]
        return items

    def _record(self, record: Any, depth: int) -> dict[str, Any]:
        """记录的每个值都在 depth 层序列化。"""
        keys = custom_keys(record)
        if len(keys) > self.max_properties:
            warn_truncation("max_properties", len(keys), self.max_properties)
            keys = keys[:self.max_properties]
        result: dict[str, Any] = {}
        for key in keys:
            item = safe_get(record, key)
            if item is MISSING or callable(item):
                continue
            result[text_form(key)] = self.value(item, depth)
        return result


def _field_text(error: Any, field: str) -> str:
    raw = error_field(error, field)
    if raw is MISSING or raw is None:
        return ""
    return text_form(raw)


def _json_scalar(value: Any) -> Any:
    """原始值 → JSON 标量。"""
    if value is None or value is UNDEFINED:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return str.__str__(value)
    if isinstance(value, int):
        return int.__int__(value)
    if isinstance(value, float):
        number = float.__float__(value)
        return number if math.isfinite(number) else str(number)
    if isinstance(value, (date, time)):
        return value.isoformat()
    return text_form(value)


def _dump_model(model: BaseModel) -> Any:
    try:
        return model.model_dump(mode="json")
    except RESOURCE_EXHAUSTION:
        raise
    except Exception:
        return text_form(model)
