"""
NormalizeOptions 的 Schema 定义与校验。

所有入口（normalize、渲染、Result 包装器）都接收同一个不可变的
Options 对象，而不是读取散落各处的全局变量。

# [Design Decision] 使用 Pydantic 模型作为 Schema 定义，
# 既能做严格校验（max_depth 必须是真正的 int，True 和 "8" 都不行），
# 又能直接从 YAML 文件反序列化。frozen=True 保证一次调用内配置不可变。
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from errnorm.config.defaults import (
    MAX_ARRAY_LENGTH,
    MAX_DEPTH,
    MAX_DEPTH_CEILING,
    MAX_PROPERTIES,
)


class NormalizeOptions(BaseModel):
    """
    归一化与渲染选项。

    YAML 文件示例::

        max_depth: 5
        max_properties: 200
        enable_subclass_preservation: true
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # --- 遍历边界 ---
    max_depth: int = Field(
        default=MAX_DEPTH,
        description="最大遍历深度（exclusive，根为第 0 层）",
        ge=1,
        le=MAX_DEPTH_CEILING,
        strict=True,
    )
    max_properties: int = Field(
        default=MAX_PROPERTIES,
        description="每条记录最多复制的键数量",
        ge=0,
        strict=True,
    )
    max_array_length: int = Field(
        default=MAX_ARRAY_LENGTH,
        description="每个序列最多复制的元素数量",
        ge=0,
        strict=True,
    )

    # --- 元数据复制 ---
    include_hidden: bool = Field(
        default=True,
        description="是否复制隐藏属性（下划线前缀属性、__slots__、内置异常成员）",
    )
    convert_opaque_keys: bool = Field(
        default=True,
        description="是否把非 str 的键转换为文本",
    )

    # --- 构造能力开关 ---
    use_native_multi_error: bool = Field(
        default=True,
        description="多错误形状是否使用原生 ExceptionGroup",
    )
    use_native_causal_chain: bool = Field(
        default=True,
        description="是否把 cause 同时链接到原生 __cause__",
    )
    enable_subclass_preservation: bool = Field(
        default=False,
        description="是否按 name 查找并保留同名异常子类",
    )

    original_stack: str | None = Field(
        default=None,
        description="显式覆盖根错误的 stack",
    )
