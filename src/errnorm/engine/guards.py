"""
环检测与深度控制。

两个守卫在每次下降之前运行，且都先于对值的任何属性访问：

- VisitedSet: 单次顶层调用内的身份集合，重复访问同一个引用值时
  用 "[Circular]" 代替下降
- at_limit(): depth >= max_depth 时用 "[Max depth of N reached]" 代替下降

# [Design Decision] 值一旦加入 VisitedSet 就不会在本次调用中移除（不回溯）。
# 这会让共享子图的第二次出现也显示为 [Circular]，
# 换来的是对任意输入都能保证终止。
"""

from __future__ import annotations

from typing import Any

from errnorm.config.defaults import CIRCULAR_MARKER, DEPTH_MARKER_TEMPLATE
from errnorm.engine.classify import is_opaque, is_primitive

__all__ = ["CIRCULAR_MARKER", "VisitedSet", "at_limit", "depth_marker"]


def at_limit(depth: int, max_depth: int) -> bool:
    """深度是否已到达上限（exclusive）。"""
    return depth >= max_depth


def depth_marker(max_depth: int) -> str:
    """深度上限标记文本。"""
    return DEPTH_MARKER_TEMPLATE.format(max_depth=max_depth)


class VisitedSet:
    """
    按对象身份记录已访问的引用值。

    只有引用类型参与：两个相等的数字不构成环。
    内部同时持有对象引用，保证遍历期间 id() 不会被复用。
    """

    __slots__ = ("_seen",)

    def __init__(self) -> None:
        self._seen: dict[int, Any] = {}

    def enter(self, value: Any) -> bool:
        """
        登记一个值并返回它此前是否已被访问过。

        返回 True 时调用方必须用 "[Circular]" 代替下降。
        """
        if is_primitive(value) or is_opaque(value):
            return False
        key = id(value)
        if key in self._seen:
            return True
        self._seen[key] = value
        return False

    def __contains__(self, value: Any) -> bool:
        return id(value) in self._seen

    def __len__(self) -> int:
        return len(self._seen)
