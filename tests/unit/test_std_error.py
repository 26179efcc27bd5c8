"""
StdError 单元测试。

覆盖范围:
- std_error.py: StdError 构造、核心字段、元数据回退、渲染上限旁表
- StdExceptionGroup、json_default()
"""

from __future__ import annotations

import json

import pytest

from errnorm import (
    OptionsValidationError,
    StdError,
    StdExceptionGroup,
    TruncationWarning,
    json_default,
    supports_exception_groups,
)


# === 构造与核心字段测试（~6 tests）===


class TestStdErrorBasics:
    """StdError 基础行为测试。"""

    def test_defaults(self) -> None:
        """测试默认 name 和 message。"""
        err = StdError()
        assert err.name == "Error"
        assert err.message == ""
        assert err.stack is None
        assert err.cause is None
        assert err.errors is None

    def test_message_and_str(self) -> None:
        """测试 str() 返回 message。"""
        err = StdError("boom", name="Timeout")
        assert str(err) == "boom"
        assert repr(err) == "StdError(name='Timeout', message='boom')"

    def test_non_str_message(self) -> None:
        """测试非 str 的 message 转为文本。"""
        assert StdError(404).message == "404"

    def test_is_raisable(self) -> None:
        """测试 StdError 可以正常抛出和捕获。"""
        with pytest.raises(StdError, match="boom"):
            raise StdError("boom")

    def test_cause_not_linked_natively(self) -> None:
        """测试构造函数不会设置 __cause__。"""
        cause = ValueError("c")
        err = StdError("x", cause=cause)
        assert err.cause is cause
        assert err.__cause__ is None

    def test_tuple_errors_become_list(self) -> None:
        """测试元组形式的 errors 转为列表。"""
        err = StdError("x", errors=(StdError("a"),))
        assert isinstance(err.errors, list)


# === 元数据测试（~6 tests）===


class TestMetadata:
    """元数据与属性回退测试。"""

    def test_extra_kwargs(self) -> None:
        """测试额外关键字参数成为元数据。"""
        err = StdError("x", code="E1", status=500)
        assert err.metadata == {"code": "E1", "status": 500}
        assert err.code == "E1"

    def test_metadata_argument(self) -> None:
        """测试 metadata 参数可包含非 str 键。"""
        err = StdError("x", metadata={1: "one", "k": "v"})
        assert err.metadata == {1: "one", "k": "v"}

    def test_reserved_keys_ignored(self) -> None:
        """测试核心字段和黑名单键不能通过元数据注入。"""
        err = StdError("x", metadata={"name": "Evil", "to_text": "t", "__class__": "C"})
        assert err.name == "Error"
        assert err.metadata == {}
        assert err.to_text() == "Error: x"

    def test_missing_attribute(self) -> None:
        """测试不存在的属性抛出 AttributeError。"""
        err = StdError("x", code=1)
        with pytest.raises(AttributeError):
            err.nothing  # noqa: B018
        with pytest.raises(AttributeError):
            err._private  # noqa: B018

    def test_sequence_truncation(self) -> None:
        """测试元数据中的序列受 max_array_length 限制。"""
        with pytest.warns(TruncationWarning):
            err = StdError("x", items=list(range(5)), max_array_length=2)
        assert err.items == [0, 1]

    def test_property_truncation(self) -> None:
        """测试元数据键受 max_properties 限制。"""
        with pytest.warns(TruncationWarning):
            err = StdError("x", max_properties=1, a=1, b=2)
        assert err.metadata == {"a": 1}


# === 渲染上限测试（~3 tests）===


class TestRenderLimits:
    """每个实例的渲染上限测试。"""

    def test_limits_not_in_metadata(self) -> None:
        """测试上限保存在旁表中，不出现在元数据里。"""
        err = StdError("x", max_depth=3)
        assert "max_depth" not in err.metadata
        assert err.max_depth == 3
        assert err.render_limits.max_depth == 3
        assert "max_depth" not in err.to_structured()

    def test_default_limit(self) -> None:
        """测试未设置时使用进程级默认值。"""
        assert StdError("x").max_depth == 8

    def test_invalid_limit(self) -> None:
        """测试非法上限抛出 OptionsValidationError。"""
        with pytest.raises(OptionsValidationError):
            StdError("x", max_depth=0)


# === 序列化测试（~4 tests）===


class TestSerialization:
    """to_json() 与 json_default() 测试。"""

    def test_to_json(self) -> None:
        """测试 to_json 输出合法 JSON。"""
        err = StdError("x", code="E1")
        assert json.loads(err.to_json()) == {"name": "Error", "message": "x", "code": "E1"}

    def test_to_json_kwargs(self) -> None:
        """测试 to_json 透传 json.dumps 参数。"""
        assert StdError("x").to_json(sort_keys=True) == '{"message": "x", "name": "Error"}'

    def test_json_default(self) -> None:
        """测试 json.dumps(default=json_default)。"""
        payload = json.dumps({"error": StdError("x"), "raw": ValueError("v")}, default=json_default)
        assert json.loads(payload) == {
            "error": {"name": "Error", "message": "x"},
            "raw": {"name": "ValueError", "message": "v"},
        }

    def test_json_default_rejects_other_types(self) -> None:
        """测试非错误对象仍按 json 协议抛出 TypeError。"""
        with pytest.raises(TypeError):
            json_default(object())


# === StdExceptionGroup 测试（~1 test）===


@pytest.mark.skipif(not supports_exception_groups(), reason="需要原生 ExceptionGroup")
class TestStdExceptionGroup:
    """StdExceptionGroup 测试。"""

    def test_native_group(self) -> None:
        """测试同时是 StdError 和原生 ExceptionGroup。"""
        group = StdExceptionGroup("batch", [StdError("a"), StdError("b")], name="BatchError")
        assert isinstance(group, ExceptionGroup)  # noqa: F821
        assert isinstance(group, StdError)
        assert group.name == "BatchError"
        assert group.message == "batch"
        assert str(group) == "batch"
        assert len(group.exceptions) == 2
        assert [e.message for e in group.errors] == ["a", "b"]

