"""
默认配置常量。

# [DX Decision] 默认值覆盖绝大多数场景：8 层深度足够展示一条完整的
# cause 链，1000 个键 / 10000 个元素足够容纳真实世界里的错误元数据，
# 同时又能挡住恶意构造的超大输入。
"""

from __future__ import annotations

# ============================================================
# 遍历边界
# ============================================================

MAX_DEPTH = 8
"""默认最大遍历深度（exclusive：max_depth=n 表示展示 n 层，根为第 0 层）"""

MAX_DEPTH_CEILING = 100
"""max_depth 的上限。

递归遍历每下降一层会消耗若干个 Python 栈帧，这个上限保证遍历
始终远离 CPython 默认的递归限制（1000）。
"""

MAX_PROPERTIES = 1000
"""每条记录最多复制的键数量"""

MAX_ARRAY_LENGTH = 10_000
"""每个序列最多复制的元素数量"""

MAX_INLINE_ITEMS = 3
"""文本渲染时，序列/记录超过此数量即折叠为摘要"""

STACK_PREVIEW_LINES = 3
"""文本渲染时，根错误展示的堆栈行数（不含第一行）"""

# ============================================================
# 标记文本
# ============================================================

CIRCULAR_MARKER = "[Circular]"
DEPTH_MARKER_TEMPLATE = "[Max depth of {max_depth} reached]"

DEFAULT_ERROR_NAME = "Error"
AGGREGATE_ERROR_NAME = "ExceptionGroup"
"""多错误容器的约定名称（Python 原生为 ExceptionGroup）"""

NULL_MESSAGE = "Unknown error (Null)"
UNDEFINED_MESSAGE = "Unknown error (Undefined)"
FALLBACK_MESSAGE = "Unknown error (Normalization failed)"

# 错误形状的五个核心字段
ERROR_FIELDS: tuple[str, ...] = ("name", "message", "cause", "errors", "stack")
