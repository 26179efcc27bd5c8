"""
文本渲染器 — 把错误形状的值渲染为人类可读的多行文本。

格式::

    <name>: <message>
      <根错误的堆栈前 3 行>
      <key>: <内联值>
      [cause]: <嵌套错误>
      [errors]: [ ... ] 或 { ... }

每下降一层缩进两个空格。渲染时重新遍历输入，
使用自己的环检测和深度守卫，与归一化过程相互独立。

# [Design Decision] errors 容器本身占一层深度，
# 其中的每个元素与容器处于同一层：数组/字典容器不额外增加语义嵌套。
"""

from __future__ import annotations

import logging
from typing import Any

from errnorm.config.defaults import (
    CIRCULAR_MARKER,
    DEFAULT_ERROR_NAME,
    MAX_INLINE_ITEMS,
    STACK_PREVIEW_LINES,
)
from errnorm.config.loader import get_default_options
from errnorm.engine.classify import (
    MISSING,
    RESOURCE_EXHAUSTION,
    ValueKind,
    classify,
    describe_callable,
    error_field,
    text_form,
)
from errnorm.engine.guards import VisitedSet, at_limit, depth_marker
from errnorm.engine.metadata import custom_keys, safe_get, safe_list, warn_truncation

logger = logging.getLogger(__name__)


def render_text(
    value: Any,
    *,
    max_depth: int | None = None,
    max_properties: int | None = None,
) -> str:
    """
    把错误形状的值渲染为多行文本。

    参数:
        value: 通常是 StdError，也可以是任意异常或错误形状的记录
        max_depth: 最大渲染深度；None 时使用进程级默认值
        max_properties: 每条记录最多渲染的元数据键数量

    返回:
        渲染后的文本；非错误形状的值按内联值渲染
    """
    defaults = get_default_options()
    renderer = _TextRenderer(
        max_depth=max_depth if max_depth is not None else defaults.max_depth,
        max_properties=max_properties if max_properties is not None else defaults.max_properties,
    )
    if classify(value) is ValueKind.ERROR_SHAPED:
        return renderer.error(value, 0)
    return renderer.value(value, 0)


class _TextRenderer:
    """单次渲染的状态：上限与已访问集合。"""

    def __init__(self, max_depth: int, max_properties: int) -> None:
        self.max_depth = max_depth
        self.max_properties = max_properties
        self.visited = VisitedSet()

    def error(self, error: Any, depth: int) -> str:
        indent = "  " * depth
        if at_limit(depth, self.max_depth):
            return indent + depth_marker(self.max_depth)
        if self.visited.enter(error):
            return indent + CIRCULAR_MARKER

        name = _field_text(error, "name") or DEFAULT_ERROR_NAME
        message = _field_text(error, "message")
        first_line = f"{name}: {message}" if message else name
        lines = [first_line if depth == 0 else indent + first_line]

        if depth == 0:
            stack = error_field(error, "stack")
            if isinstance(stack, str) and stack:
                preview = text_form(stack).split("\n")[1:1 + STACK_PREVIEW_LINES]
                lines.extend(f"  {line.strip()}" for line in preview)

        keys = custom_keys(error)
        if len(keys) > self.max_properties:
            warn_truncation("max_properties", len(keys), self.max_properties, what="元数据键")
            keys = keys[:self.max_properties]
        for key in keys:
            item = safe_get(error, key)
            if item is MISSING or callable(item):
                continue
            lines.append(f"{indent}  {text_form(key)}: {self.value(item, depth + 1)}")

        cause = error_field(error, "cause")
        if cause is not MISSING and cause is not None:
            lines.append(f"{indent}  [cause]: {self.cause(cause, depth + 1)}")

        errors = error_field(error, "errors")
        if errors is not MISSING and errors is not None:
            lines.append(f"{indent}  [errors]: {self.errors(errors, depth + 1)}")

        return "\n".join(lines)

    def cause(self, cause: Any, depth: int) -> str:
        if at_limit(depth, self.max_depth):
            return depth_marker(self.max_depth)
        if classify(cause) is ValueKind.ERROR_SHAPED:
            return self.error(cause, depth).lstrip()
        return self.value(cause, depth)

    def errors(self, errors: Any, depth: int) -> str:
        indent = "  " * depth
        if at_limit(depth, self.max_depth):
            return depth_marker(self.max_depth)

        kind = classify(errors)
        if kind is ValueKind.SEQUENCE:
            if self.visited.enter(errors):
                return CIRCULAR_MARKER
            items = safe_list(errors)
            if items is MISSING:
                return text_form(errors)
            if not items:
                return "[]"
            lines = [
                f"{indent}  [{idx}]: {self._error_item(item, depth)}"
                for idx, item in enumerate(items)
            ]
            return "[\n" + "\n".join(lines) + f"\n{indent}]"

        if kind is ValueKind.PLAIN_RECORD:
            if self.visited.enter(errors):
                return CIRCULAR_MARKER
            lines = []
            for key in custom_keys(errors):
                item = safe_get(errors, key)
                if item is MISSING or callable(item):
                    continue
                lines.append(f"{indent}  {text_form(key)}: {self._error_item(item, depth)}")
            if not lines:
                return "{}"
            return "{\n" + "\n".join(lines) + f"\n{indent}}}"

        return self.value(errors, depth)

    def _error_item(self, item: Any, depth: int) -> str:
        if classify(item) is ValueKind.ERROR_SHAPED:
            return self.error(item, depth).strip()
        return self.value(item, depth)

    def value(self, value: Any, depth: int) -> str:
        """内联值：原始值直接输出，容器超过 3 项折叠为摘要。格式化失败时退回文本形式。"""
        try:
            return self._inline(value, depth)
        except RESOURCE_EXHAUSTION:
            raise
        except Exception:
            logger.debug("渲染 %s 失败，退回文本形式", type(value).__name__, exc_info=True)
            return text_form(value)

    def _inline(self, value: Any, depth: int) -> str:
        if at_limit(depth, self.max_depth):
            return depth_marker(self.max_depth)

        kind = classify(value)
        if kind is ValueKind.PRIMITIVE:
            if value is None:
                return "None"
            text = text_form(value)
            return f"'{text}'" if isinstance(value, str) else text
        if kind is ValueKind.OPAQUE_KEY:
            return text_form(value)
        if kind is ValueKind.CALLABLE:
            return describe_callable(value)
        if kind is ValueKind.ERROR_SHAPED:
            return self.error(value, depth).lstrip()

        if self.visited.enter(value):
            return CIRCULAR_MARKER

        if kind is ValueKind.SEQUENCE:
            items = safe_list(value)
            if items is MISSING:
                return text_form(value)
            if not items:
                return "[]"
            if len(items) > MAX_INLINE_ITEMS:
                return f"[Array({len(items)})]"
            return "[" + ", ".join(self.value(item, depth + 1) for item in items) + "]"

        entries = []
        for key in custom_keys(value):
            item = safe_get(value, key)
            if item is not MISSING and not callable(item):
                entries.append((key, item))
        if not entries:
            return "{}"
        if len(entries) > MAX_INLINE_ITEMS:
            return f"{{Object with {len(entries)} keys}}"
        pairs = [f"{text_form(key)}: {self.value(item, depth + 1)}" for key, item in entries]
        return "{ " + ", ".join(pairs) + " }"


def _field_text(error: Any, field: str) -> str:
    raw = error_field(error, field)
    if raw is MISSING or raw is None:
        return ""
    return text_form(raw)
