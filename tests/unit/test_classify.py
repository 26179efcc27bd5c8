"""
值分类器单元测试。

覆盖范围:
- engine/classify.py: classify(), own_keys(), get_own(), error_field(), text_form()
- 异常快速路径的虚拟字段（name/message/cause/errors/stack/notes）
- 恶意对象的探测失败降级
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from datetime import datetime
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any
from uuid import uuid4

import pytest

from errnorm import StdError
from errnorm.engine.classify import (
    MISSING,
    UNDEFINED,
    RecordView,
    ValueKind,
    classify,
    describe_callable,
    error_field,
    get_own,
    is_error_shaped,
    own_keys,
    text_form,
    to_builtin,
)


class Color(Enum):
    RED = "red"


class Level(IntEnum):
    HIGH = 3


class Widget:
    pass


def sample_handler() -> None:
    pass


class HostileMapping(Mapping):
    """每次读取都抛异常的 Mapping。"""

    def __getitem__(self, key: Any) -> Any:
        raise RuntimeError("boom")

    def __iter__(self) -> Iterator[str]:
        return iter(["message", "code"])

    def __len__(self) -> int:
        return 2


class ApiFailure(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.status = 500
        self._request_id = "req-1"


class BrokenStr(Exception):
    def __str__(self) -> str:
        raise RuntimeError("cannot render")


class HostileStr(str):
    def __str__(self) -> str:
        raise RuntimeError("str boom")


class HostileInt(int):
    def __str__(self) -> str:
        raise RuntimeError("str boom")


class HostileFloat(float):
    def __repr__(self) -> str:
        raise RuntimeError("repr boom")


# === classify 测试（~8 tests）===


class TestClassify:
    """classify() 分类测试。"""

    @pytest.mark.parametrize(
        "value",
        [None, UNDEFINED, True, 0, 1.5, "text", b"raw", Decimal("1.0"), datetime(2024, 1, 1), uuid4(), Level.HIGH],
    )
    def test_primitives(self, value: Any) -> None:
        """测试原始值与标量类型。"""
        assert classify(value) is ValueKind.PRIMITIVE

    def test_opaque_values(self) -> None:
        """测试 Enum 成员和 object() 哨兵是不透明值。"""
        assert classify(Color.RED) is ValueKind.OPAQUE_KEY
        assert classify(object()) is ValueKind.OPAQUE_KEY

    def test_callables(self) -> None:
        """测试函数与类都归为可调用对象。"""
        assert classify(sample_handler) is ValueKind.CALLABLE
        assert classify(Widget) is ValueKind.CALLABLE
        assert classify(len) is ValueKind.CALLABLE

    def test_sequences(self) -> None:
        """测试 list/tuple/set 是序列，str 不是。"""
        assert classify([1]) is ValueKind.SEQUENCE
        assert classify((1,)) is ValueKind.SEQUENCE
        assert classify({1}) is ValueKind.SEQUENCE
        assert classify("abc") is ValueKind.PRIMITIVE

    def test_exception_fast_path(self) -> None:
        """测试异常实例总是错误形状。"""
        assert classify(ValueError()) is ValueKind.ERROR_SHAPED

    def test_error_shaped_records(self) -> None:
        """测试拥有任一核心字段的记录是错误形状。"""
        assert classify({"message": "x"}) is ValueKind.ERROR_SHAPED
        assert classify({"errors": []}) is ValueKind.ERROR_SHAPED

        obj = Widget()
        obj.stack = "trace"  # type: ignore[attr-defined]
        assert is_error_shaped(obj)

    def test_plain_records(self) -> None:
        """测试没有核心字段的记录是普通记录。"""
        assert classify({"code": 1}) is ValueKind.PLAIN_RECORD
        assert classify(Widget()) is ValueKind.PLAIN_RECORD

    def test_hostile_mapping_falls_back_to_plain_record(self) -> None:
        """测试探测时抛异常的 Mapping 被当作普通记录。"""
        assert classify(HostileMapping()) is ValueKind.PLAIN_RECORD


# === 自有键读取测试（~7 tests）===


class TestOwnKeys:
    """own_keys() / get_own() 测试。"""

    def test_mapping_keys(self) -> None:
        """测试 Mapping 返回全部键（包括非 str 键）。"""
        assert own_keys({"a": 1, 2: "b"}) == ["a", 2]

    def test_hidden_attributes(self) -> None:
        """测试下划线属性只在 include_hidden 时出现。"""
        exc = ApiFailure("x")
        assert own_keys(exc, include_hidden=False) == ["status"]
        assert "_request_id" in own_keys(exc, include_hidden=True)

    def test_builtin_exception_members(self) -> None:
        """测试内置异常的成员属性作为隐藏键出现。"""
        exc = OSError(2, "No such file", "a.txt")
        keys = own_keys(exc)
        assert "errno" in keys
        assert "filename" in keys
        assert get_own(exc, "errno") == 2
        assert get_own(exc, "filename") == "a.txt"

    def test_unset_member_is_missing(self) -> None:
        """测试值为 None 的成员属性视为不存在。"""
        exc = OSError("plain")
        assert get_own(exc, "filename") is MISSING

    def test_notes_exposed(self) -> None:
        """测试 __notes__ 以 notes 键暴露。"""
        exc = ValueError("x")
        exc.__notes__ = ["check the input"]  # type: ignore[attr-defined]
        assert "notes" in own_keys(exc)
        assert get_own(exc, "notes") == ["check the input"]

    def test_missing_key(self) -> None:
        """测试不存在的键返回 MISSING。"""
        assert get_own({"a": 1}, "b") is MISSING
        assert get_own(Widget(), "b") is MISSING

    def test_record_view_is_abstract(self) -> None:
        """测试 RecordView 不能直接实例化，StdError 是它的名义子类。"""
        with pytest.raises(TypeError):
            RecordView()  # type: ignore[abstract]
        assert issubclass(StdError, RecordView)
        assert not isinstance({"message": "x"}, RecordView)


# === error_field 测试（~6 tests）===


class TestErrorField:
    """error_field() 虚拟字段测试。"""

    def test_raised_exception_fields(self, raised_error: Exception) -> None:
        """测试已抛出异常的 name/message/stack。"""
        assert error_field(raised_error, "name") == "ValueError"
        assert error_field(raised_error, "message") == "invalid amount"
        stack = error_field(raised_error, "stack")
        assert stack.startswith("ValueError: invalid amount\n")
        assert "raise exc" in stack

    def test_unraised_exception_has_no_stack(self) -> None:
        """测试从未抛出的异常没有 stack。"""
        assert error_field(ValueError("x"), "stack") is MISSING

    def test_explicit_cause(self, chained_error: Exception) -> None:
        """测试 raise ... from ... 的 __cause__。"""
        cause = error_field(chained_error, "cause")
        assert isinstance(cause, ConnectionError)

    def test_implicit_context(self) -> None:
        """测试隐式的 __context__ 也被视为 cause。"""
        try:
            try:
                raise KeyError("k")
            except KeyError:
                raise ValueError("while handling")
        except ValueError as exc:
            assert isinstance(error_field(exc, "cause"), KeyError)

    def test_suppressed_context(self) -> None:
        """测试 raise ... from None 抑制 cause。"""
        try:
            try:
                raise KeyError("k")
            except KeyError:
                raise ValueError("clean") from None
        except ValueError as exc:
            assert error_field(exc, "cause") is MISSING

    def test_broken_str_is_absorbed(self) -> None:
        """测试 __str__ 抛异常时 message 视为不存在。"""
        assert error_field(BrokenStr(), "message") is MISSING

    def test_record_fields(self) -> None:
        """测试记录的字段直接读取。"""
        assert error_field({"name": "X"}, "name") == "X"
        assert error_field({"name": "X"}, "message") is MISSING
        assert error_field(HostileMapping(), "message") is MISSING


# === text_form 测试（~6 tests）===


class TestTextForm:
    """text_form() 测试。"""

    def test_primitives(self) -> None:
        """测试原始值的文本形式。"""
        assert text_form("x") == "x"
        assert text_form(42) == "42"
        assert text_form(None) == "None"
        assert text_form(UNDEFINED) == "undefined"
        assert text_form(b"ab") == "ab"

    def test_opaque_values(self) -> None:
        """测试不透明值的文本形式。"""
        assert text_form(object()) == "<object>"
        assert text_form(Color.RED) == "Color.RED"

    def test_callables(self) -> None:
        """测试可调用对象的描述。"""
        assert text_form(sample_handler) == "<function sample_handler>"
        assert text_form(Widget) == "<class Widget>"
        assert describe_callable(len) == "<function len>"

    def test_error_shaped(self) -> None:
        """测试错误形状优先取 message，其次 name。"""
        assert text_form({"message": "boom"}) == "boom"
        assert text_form({"name": "Timeout"}) == "Timeout"
        assert text_form(BrokenStr()) == "BrokenStr"

    def test_plain_objects(self) -> None:
        """测试普通对象的文本形式。"""
        assert text_form(Widget()) == "<Widget object>"
        assert text_form({"code": 1}) == "<dict object>"

    def test_primitive_subclasses(self) -> None:
        """测试 str/int/float 子类被转换为内置类型，Enum 成员保持原样。"""
        text = text_form(HostileStr("a"))
        assert text == "a"
        assert type(text) is str
        assert type(to_builtin(HostileInt(3))) is int
        assert to_builtin(HostileInt(3)) == 3
        assert type(to_builtin(HostileFloat(1.5))) is float
        assert to_builtin(Level.HIGH) is Level.HIGH
        assert text_form(HostileInt(3)) == "3"
