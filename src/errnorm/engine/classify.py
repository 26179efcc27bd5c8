"""
值分类器 — 在入口处把任意值归入一个封闭的标签集合。

归一化和渲染都建立在同一个问题上："这个值是什么？"
本模块只回答这个问题，并提供读取"自有键"的安全方法：

- classify(): 返回 ValueKind 标签
- own_keys() / get_own(): 读取记录的自有键与值
- error_field(): 读取五个核心错误字段（name/message/cause/errors/stack）
- text_form(): 把任意值转为文本，永不抛异常

# [Design Decision] 分类一次、携带标签，而不是在管道各处反复做鸭子类型判断。
# 所有探测都包在 try 里：对恶意对象（会抛异常的 __getitem__、__str__、
# __dict__ 属性等）的访问失败一律视为"属性不存在"。
"""

from __future__ import annotations

import builtins
import inspect
import logging
import traceback
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence, Set as AbstractSet
from datetime import date, time, timedelta
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from functools import lru_cache
from pathlib import PurePath
from typing import Any
from uuid import UUID

from errnorm.config.defaults import ERROR_FIELDS

logger = logging.getLogger(__name__)

# 资源耗尽类异常：复制元数据时遇到它们必须重新抛出，
# 区分"某个 getter 坏了"和"运行时本身出了问题"。
RESOURCE_EXHAUSTION: tuple[type[BaseException], ...] = (MemoryError, RecursionError)

_SCALAR_TYPES: tuple[type, ...] = (
    str,
    int,  # 包含 bool 和 IntEnum
    float,
    complex,
    bytes,
    bytearray,
    Decimal,
    Fraction,
    date,  # 包含 datetime
    time,
    timedelta,
    UUID,
    PurePath,
)

_BASE_EXCEPTION_GROUP: type | None = getattr(builtins, "BaseExceptionGroup", None)

# 读取描述符属性时跳过的类：它们的成员由 error_field() 单独处理
_DESCRIPTOR_SKIP: tuple[type, ...] = tuple(
    t for t in (object, BaseException, Exception, _BASE_EXCEPTION_GROUP) if t is not None
)


class ValueKind(str, Enum):
    """值的分类标签。"""

    PRIMITIVE = "primitive"
    """None、UNDEFINED、数字、字符串以及日期/Decimal/UUID 等标量"""

    OPAQUE_KEY = "opaque_key"
    """Enum 成员与 object() 哨兵：只按身份区分，按文本输出"""

    CALLABLE = "callable"
    """函数、方法、类等可调用对象"""

    SEQUENCE = "sequence"
    """list / tuple / set 等（str 与 bytes 除外）"""

    ERROR_SHAPED = "error_shaped"
    """异常实例，或拥有 name/message/cause/errors/stack 任一自有键的记录"""

    PLAIN_RECORD = "plain_record"
    """其余的 Mapping 或普通对象"""


class _Sentinel:
    """具名哨兵值。"""

    __slots__ = ("_name",)

    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name

    def __bool__(self) -> bool:
        return False


UNDEFINED: Any = _Sentinel("UNDEFINED")
"""表示"未定义"的输入值（区别于 None）"""

MISSING: Any = _Sentinel("MISSING")
"""内部使用：键不存在或不可读"""


# [Design Decision] 使用 ABC 而非 Protocol：isinstance(value, RecordView)
# 作用于任意（可能是恶意的）输入，判断必须是名义上的，不能做属性探测。
class RecordView(ABC):
    """
    以"自有键视图"暴露内容的对象基类。

    StdError 继承此类：它的核心字段和元数据都通过 _own_keys() / _get_own()
    读取，而不是通过实例的 __dict__。
    """

    __slots__ = ()

    @abstractmethod
    def _own_keys(self) -> list[Any]:
        """全部自有键（核心字段在前）。"""

    @abstractmethod
    def _get_own(self, key: Any) -> Any:
        """读取一个自有键；不存在时返回 MISSING。"""


# ============================================================
# 基础判断
# ============================================================


def is_primitive(value: Any) -> bool:
    """值是否为原始标量（不参与环检测，不会被下降）。"""
    return value is None or value is UNDEFINED or isinstance(value, _SCALAR_TYPES)


def is_opaque(value: Any) -> bool:
    """值是否为只按身份区分的不透明值。"""
    return isinstance(value, Enum) or type(value) is object


def is_dunder(key: Any) -> bool:
    """键是否为 __xxx__ 形式的双下划线名称。"""
    return isinstance(key, str) and len(key) > 4 and key.startswith("__") and key.endswith("__")


def is_exception_group(value: Any) -> bool:
    return _BASE_EXCEPTION_GROUP is not None and isinstance(value, _BASE_EXCEPTION_GROUP)


def classify(value: Any) -> ValueKind:
    """
    对一个值分类。

    判断顺序：异常实例（快速路径）→ 原始值 → 不透明值 → 可调用对象
    → 序列 → 错误形状记录 → 普通记录。

    # [Design Decision] 可调用对象必须先于错误形状判断：
    # 类和函数经常带有 name 之类的属性，会被误判为错误。

    永不抛异常（资源耗尽类除外）；探测失败时回退为 PLAIN_RECORD。
    """
    try:
        if isinstance(value, BaseException):
            return ValueKind.ERROR_SHAPED
        if is_primitive(value):
            return ValueKind.PRIMITIVE
        if is_opaque(value):
            return ValueKind.OPAQUE_KEY
        if callable(value):
            return ValueKind.CALLABLE
        if isinstance(value, (Sequence, AbstractSet)):
            return ValueKind.SEQUENCE
        if _has_error_field(value):
            return ValueKind.ERROR_SHAPED
    except RESOURCE_EXHAUSTION:
        raise
    except Exception:
        logger.debug("分类 %s 时探测失败，按普通记录处理", type(value).__name__, exc_info=True)
    return ValueKind.PLAIN_RECORD


def is_error_shaped(value: Any) -> bool:
    return classify(value) is ValueKind.ERROR_SHAPED


def _has_error_field(value: Any) -> bool:
    if isinstance(value, Mapping):
        return any(_mapping_contains(value, field) for field in ERROR_FIELDS)
    attrs = _instance_dict(value)
    descriptors = _descriptor_names(type(value))
    for field in ERROR_FIELDS:
        if field in attrs:
            return True
        if field in descriptors and _read_descriptor(value, field) is not MISSING:
            return True
    return False


def _mapping_contains(mapping: Mapping[Any, Any], key: str) -> bool:
    try:
        return key in mapping
    except RESOURCE_EXHAUSTION:
        raise
    except Exception:
        return False


# ============================================================
# 自有键读取
# ============================================================


def _instance_dict(value: Any) -> dict[str, Any]:
    """读取实例的 __dict__；不存在或不可读时返回空字典。"""
    try:
        attrs = object.__getattribute__(value, "__dict__")
    except AttributeError:
        return {}
    return attrs if isinstance(attrs, dict) else {}


@lru_cache(maxsize=512)
def _descriptor_names(cls: type) -> tuple[str, ...]:
    """
    收集类层级上的描述符属性名（__slots__ 与内置异常成员）。

    例如 OSError 的 errno / strerror / filename，SyntaxError 的 lineno。
    它们不在实例 __dict__ 里，相当于"不可枚举的自有属性"。
    """
    names: list[str] = []
    for klass in cls.__mro__:
        if klass in _DESCRIPTOR_SKIP or issubclass(klass, RecordView):
            continue
        for attr, member in vars(klass).items():
            if is_dunder(attr) or attr in names:
                continue
            if inspect.ismemberdescriptor(member) or inspect.isgetsetdescriptor(member):
                names.append(attr)
    return tuple(names)


def _read_descriptor(value: Any, name: str) -> Any:
    """读取描述符属性；未赋值的 slot 或值为 None 时返回 MISSING。"""
    try:
        result = getattr(value, name)
    except AttributeError:
        return MISSING
    return MISSING if result is None else result


def own_keys(value: Any, include_hidden: bool = True) -> list[Any]:
    """
    返回记录的自有键列表。

    - RecordView（StdError）：核心字段 + 元数据键
    - Mapping：全部键（包括非 str 的不透明键）
    - 普通对象：实例 __dict__ 中的公开属性；include_hidden 时追加
      下划线前缀属性和描述符属性
    - 异常实例额外暴露 __notes__ 为 "notes"

    双下划线属性永远不会出现在结果中。
    """
    if isinstance(value, RecordView):
        return value._own_keys()
    if isinstance(value, Mapping):
        return list(value.keys())

    attrs = _instance_dict(value)
    keys: list[Any] = []
    hidden: list[Any] = []
    for key in attrs:
        if not isinstance(key, str) or is_dunder(key):
            continue
        if key.startswith("_"):
            hidden.append(key)
        else:
            keys.append(key)

    if isinstance(value, BaseException) and "notes" not in attrs and attrs.get("__notes__"):
        keys.append("notes")

    if include_hidden:
        keys.extend(hidden)
        keys.extend(name for name in _descriptor_names(type(value)) if name not in attrs)
    return keys


def get_own(value: Any, key: Any) -> Any:
    """
    读取一个自有键的值。

    键不存在时返回 MISSING。注意：本函数不吞异常，
    恶意 getter 抛出的异常由调用方决定如何处理。
    """
    if isinstance(value, RecordView):
        return value._get_own(key)
    if isinstance(value, Mapping):
        try:
            return value[key]
        except KeyError:
            return MISSING

    attrs = _instance_dict(value)
    if key in attrs:
        return attrs[key]
    if key == "notes" and isinstance(value, BaseException) and attrs.get("__notes__"):
        return list(attrs["__notes__"])
    if key in _descriptor_names(type(value)):
        return _read_descriptor(value, key)
    return MISSING


def error_field(value: Any, field: str) -> Any:
    """
    读取五个核心错误字段之一；不存在或访问失败时返回 MISSING。

    对原生异常，字段是"虚拟"的：
    - name: 自有 name 属性，否则为类型名
    - message: 自有 message 属性，否则 ExceptionGroup.message，否则 str(exc)
    - cause: 自有 cause 属性，否则 __cause__，否则未被抑制的 __context__
    - errors: 自有 errors 属性，否则 ExceptionGroup.exceptions
    - stack: 自有 stack 属性，否则由 __traceback__ 格式化
    """
    try:
        if isinstance(value, BaseException) and not isinstance(value, RecordView):
            return _exception_field(value, field)
        return get_own(value, field)
    except RESOURCE_EXHAUSTION:
        raise
    except Exception:
        logger.debug("读取字段 %r 失败，视为不存在", field, exc_info=True)
        return MISSING


def _exception_field(exc: BaseException, field: str) -> Any:
    attrs = _instance_dict(exc)
    if field in attrs:
        return attrs[field]

    if field == "name":
        return type(exc).__name__
    if field == "message":
        if is_exception_group(exc):
            return exc.message  # type: ignore[attr-defined]
        return str(exc)
    if field == "cause":
        if exc.__cause__ is not None:
            return exc.__cause__
        if exc.__context__ is not None and not exc.__suppress_context__:
            return exc.__context__
        return MISSING
    if field == "errors":
        if is_exception_group(exc):
            return list(exc.exceptions)  # type: ignore[attr-defined]
        return MISSING
    if field == "stack":
        return format_stack(exc) or MISSING
    return MISSING


def format_stack(exc: BaseException) -> str | None:
    """
    把异常的 traceback 格式化为 stack 文本。

    第一行是 "<类型名>: <消息>"，其后是各帧（与 traceback.format_tb 一致）。
    异常从未被抛出过（没有 __traceback__）时返回 None。
    """
    tb = exc.__traceback__
    if tb is None:
        return None
    try:
        header = f"{type(exc).__name__}: {exc}"
    except RESOURCE_EXHAUSTION:
        raise
    except Exception:
        header = type(exc).__name__
    frames = "".join(traceback.format_tb(tb)).rstrip("\n")
    return f"{header}\n{frames}" if frames else header


# ============================================================
# 文本形式
# ============================================================


def describe_callable(value: Any) -> str:
    """可调用对象的确定性描述，例如 "<function load_user>"。"""
    try:
        kind = "class" if isinstance(value, type) else "function"
        qualname = getattr(value, "__qualname__", None) or type(value).__qualname__
        return f"<{kind} {qualname}>"
    except RESOURCE_EXHAUSTION:
        raise
    except Exception:
        return "<function>"


def _object_text(value: Any) -> str:
    return f"<{type(value).__name__} object>"


def to_builtin(value: Any) -> Any:
    """
    把 str / int / float 子类的实例转换为对应的内置类型。

    子类可能重写 __str__、__format__ 等方法，下游渲染只接触内置类型。
    Enum 成员（如 IntEnum）保持原样。转换失败时返回其文本形式。
    """
    cls = type(value)
    if cls in (str, int, float, bool) or isinstance(value, Enum):
        return value
    try:
        if isinstance(value, str):
            return str.__str__(value)
        if isinstance(value, int):
            return int.__int__(value)
        if isinstance(value, float):
            return float.__float__(value)
    except RESOURCE_EXHAUSTION:
        raise
    except Exception:
        logger.debug("无法把 %s 转换为内置类型", cls.__name__, exc_info=True)
        return _object_text(value)
    return value


def text_form(value: Any) -> str:
    """
    把任意值转为文本，永不抛异常（资源耗尽类除外）。

    - str 原样返回（子类先转为内置 str）；其余原始值用 str()
    - Enum 成员用 str()，object() 哨兵为 "<object>"
    - 可调用对象为 "<function name>" / "<class name>"
    - 错误形状的值优先取 message，其次 name
    - 其余对象为 "<类型名 object>"
    """
    try:
        if isinstance(value, str):
            return to_builtin(value)
        if value is UNDEFINED:
            return "undefined"
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", errors="replace")
        kind = classify(value)
        if kind is ValueKind.PRIMITIVE:
            return str(to_builtin(value))
        if kind is ValueKind.OPAQUE_KEY:
            return "<object>" if type(value) is object else str(value)
        if kind is ValueKind.CALLABLE:
            return describe_callable(value)
        if kind is ValueKind.ERROR_SHAPED:
            for field in ("message", "name"):
                candidate = error_field(value, field)
                if candidate is not MISSING and candidate is not None and is_primitive(candidate):
                    return text_form(candidate)
        return _object_text(value)
    except RESOURCE_EXHAUSTION:
        raise
    except Exception:
        return _object_text(value)
