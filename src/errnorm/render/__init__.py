"""
渲染层：文本渲染与结构化序列化。

两个渲染器都只读取错误形状（name/message/stack/cause/errors 与元数据），
因此同样适用于 StdError、原生异常和错误形状的字典。
"""

from errnorm.render.structured import render_structured
from errnorm.render.text import render_text

__all__ = ["render_structured", "render_text"]
