"""
归一化引擎。

- classify: 值分类与自有键读取
- guards: 环检测与深度控制
- metadata: 安全元数据复制
- construct: 规范错误构造（依赖 StdError）
- normalizer: normalize() 的实现（依赖 StdError）

construct 与 normalizer 依赖 errnorm.std_error，而 std_error 又依赖
本包的底层模块，所以这里只导出底层模块。
"""

from errnorm.engine.classify import MISSING, UNDEFINED, ValueKind, classify, text_form
from errnorm.engine.guards import VisitedSet, at_limit, depth_marker
from errnorm.engine.metadata import STRUCTURAL_DENYLIST, copy_metadata

__all__ = [
    "MISSING",
    "STRUCTURAL_DENYLIST",
    "UNDEFINED",
    "ValueKind",
    "VisitedSet",
    "at_limit",
    "classify",
    "copy_metadata",
    "depth_marker",
    "text_form",
]
