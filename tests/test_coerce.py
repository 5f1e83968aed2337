"""测试转换引擎和目标形状.

覆盖 bencstruct.coerce 与 bencstruct.types:
1. 标量形状 (整数宽度截断, 文本解析, 浮点, 字符串, 字节)
2. 容器形状 (LIST, MAP, OPTIONAL) 与错误路径
3. 类型注解到形状的推断
4. fill() 就地写入
"""

import copy
from typing import Any

import pytest

from bencstruct import (
    BOOL,
    BYTES,
    DOUBLE,
    FLOAT,
    INT8,
    INT16,
    INT32,
    INT64,
    LIST,
    MAP,
    STRING,
    UINT8,
    UINT16,
    UINT32,
    UINT64,
    BencodeCoercionError,
    BencodeField,
    BencodeStruct,
    coerce,
    fill,
)
from bencstruct.types import ANY, OPTIONAL, kind_of, resolve_shape


class Peer(BencodeStruct):
    """fill() 测试用结构体."""

    ip: str = ""
    port: int = BencodeField(0, bencode_type=UINT16)
    peer_id: bytes = BencodeField(b"", name="peer id")


# --- 整数 ---


@pytest.mark.parametrize(
    ("shape", "source", "expected"),
    [
        (INT64, 42, 42),
        (INT64, b"42", 42),
        (INT64, b"-42", -42),
        (INT64, b"+7", 7),
        (INT64, "13", 13),
        (INT32, b"42", 42),
        (INT8, 127, 127),
        (INT8, 128, -128),
        (INT8, 200, -56),
        (INT16, 65535, -1),
        (INT32, 2**31, -(2**31)),
        (UINT8, 300, 44),
        (UINT8, -1, 255),
        (UINT16, b"65537", 1),
        (UINT32, -1, 2**32 - 1),
        (UINT64, -1, 2**64 - 1),
        (UINT64, b"18446744073709551615", 2**64 - 1),
        (int, True, 1),
    ],
)
def test_coerce_integers(shape: Any, source: Any, expected: int) -> None:
    """整数形状按目标宽度截断, 文本按十进制解析."""
    assert coerce(shape, source) == expected


@pytest.mark.parametrize(
    ("shape", "source", "match"),
    [
        (INT64, b"abc", "invalid integer"),
        (INT64, b"1.5", "invalid integer"),
        (INT64, b"", "invalid integer"),
        (INT64, b" 1", "invalid integer"),
        (INT64, b"9223372036854775808", "out of range"),
        (UINT32, b"-1", "invalid unsigned integer"),
        (UINT64, b"18446744073709551616", "out of range"),
        (INT64, b"\xff", "non-ASCII"),
        (INT64, [1], "don't know how to coerce list to INT64"),
        (INT32, 1.5, "don't know how to coerce float to INT32"),
        (INT64, None, "don't know how to coerce nil to INT64"),
    ],
)
def test_coerce_integer_errors(shape: Any, source: Any, match: str) -> None:
    """无法解析或没有转换规则时应报 BencodeCoercionError."""
    with pytest.raises(BencodeCoercionError, match=match):
        coerce(shape, source)


def test_coerce_error_is_value_error() -> None:
    """BencodeCoercionError 同时是 ValueError."""
    with pytest.raises(ValueError):
        coerce(int, b"x")


# --- 布尔, 浮点, 字符串, 字节 ---


@pytest.mark.parametrize(
    ("source", "expected"),
    [(0, False), (1, True), (-3, True), (b"0", False), (b"1", True)],
)
def test_coerce_bool(source: Any, expected: bool) -> None:
    """布尔值按整数的真值转换."""
    assert coerce(BOOL, source) is expected


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        (1.5, 1.5),
        (3, 3.0),
        (b"1.5", 1.5),
        (b"-2.250000", -2.25),
        ("1e3", 1000.0),
    ],
)
def test_coerce_double(source: Any, expected: float) -> None:
    """浮点形状接受浮点数, 整数和可解析的文本."""
    assert coerce(DOUBLE, source) == expected
    assert coerce(float, source) == expected


@pytest.mark.parametrize(
    "source", [b"abc", b"1_0", b"", b" 1.5", b"1.5 ", "\t2.0"]
)
def test_coerce_double_invalid(source: bytes) -> None:
    """无法解析的浮点文本应报错."""
    with pytest.raises(BencodeCoercionError, match="invalid float"):
        coerce(DOUBLE, source)


def test_coerce_float_single_precision() -> None:
    """FLOAT 结果舍入到单精度."""
    result = coerce(FLOAT, 0.1)

    assert result != 0.1
    assert result == pytest.approx(0.1, rel=1e-7)
    assert coerce(FLOAT, b"0.5") == 0.5


def test_coerce_float_overflow() -> None:
    """超出单精度范围的值应报错."""
    with pytest.raises(BencodeCoercionError, match="out of range for FLOAT"):
        coerce(FLOAT, 1e300)


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        (b"spam", "spam"),
        ("spam", "spam"),
        (100000, "100000"),
        (-5, "-5"),
        (1.5, "1.5"),
        (b"\xe4\xb8\xad", "中"),
    ],
)
def test_coerce_string(source: Any, expected: str) -> None:
    """字符串形状解码字节串并格式化数字."""
    assert coerce(STRING, source) == expected
    assert coerce(str, source) == expected


def test_coerce_string_invalid_utf8_roundtrip() -> None:
    """无法按 UTF-8 解码的字节保留在字符串中, 可以还原."""
    text = coerce(str, b"\xffab")

    assert text == "\udcffab"
    assert coerce(bytes, text) == b"\xffab"


def test_coerce_string_rejects_containers() -> None:
    """容器不能转换为字符串."""
    with pytest.raises(BencodeCoercionError, match="coerce list to STRING"):
        coerce(str, [b"a"])


def test_coerce_bytes() -> None:
    """字节形状接受字节串和文本, 拒绝整数."""
    assert coerce(BYTES, b"ab") == b"ab"
    assert coerce(bytes, bytearray(b"ab")) == b"ab"
    assert coerce(bytes, "中") == b"\xe4\xb8\xad"

    with pytest.raises(BencodeCoercionError, match="integer to BYTES"):
        coerce(bytes, 1)


def test_coerce_any_passthrough() -> None:
    """ANY 形状原样返回."""
    value = {b"a": [1]}

    assert coerce(ANY, value) is value
    assert coerce(Any, value) is value


# --- 容器 ---


def test_coerce_list() -> None:
    """列表的每个元素递归转换."""
    assert coerce(list[int], [b"1", 2]) == [1, 2]
    assert coerce(LIST[STRING], [b"a", 1]) == ["a", "1"]
    assert coerce(tuple[int, ...], [b"3"]) == [3]
    assert coerce(list, [b"a", 1]) == [b"a", 1]


def test_coerce_list_requires_list() -> None:
    """非列表的源不能转换为列表."""
    with pytest.raises(BencodeCoercionError, match="coerce string to LIST"):
        coerce(list[int], b"123")


def test_coerce_list_error_location() -> None:
    """列表元素转换失败时 loc 指向出错的下标."""
    with pytest.raises(BencodeCoercionError) as exc:
        coerce(list[int], [1, 2, b"x"])

    assert exc.value.loc == [2]
    assert str(exc.value).endswith("(at 2)")


def test_coerce_map() -> None:
    """映射的键解码为 str, 值递归转换."""
    assert coerce(dict[str, int], {b"a": b"1", b"b": 2}) == {"a": 1, "b": 2}
    assert coerce(MAP[STRING], {b"k": b"v"}) == {"k": "v"}
    assert coerce(dict[bytes, str], {b"k": 5}) == {"k": "5"}


def test_coerce_nested_error_location() -> None:
    """嵌套容器中的错误路径从外到内记录."""
    source = {b"files": [{b"length": b"12"}, {b"length": b"oops"}]}

    with pytest.raises(BencodeCoercionError) as exc:
        coerce(dict[str, list[dict[str, int]]], source)

    assert exc.value.loc == ["files", 1, "length"]
    assert "(at files.1.length)" in str(exc.value)


def test_coerce_optional() -> None:
    """可空形状让 None 通过, 其他值按元素形状转换."""
    assert coerce(int | None, None) is None
    assert coerce(int | None, b"5") == 5
    assert coerce(OPTIONAL[STRING], b"x") == "x"


def test_coerce_does_not_mutate_source() -> None:
    """转换过程不会修改源树."""
    source = {b"a": [b"1", b"2"], b"b": {b"c": b"3"}}
    snapshot = copy.deepcopy(source)

    coerce(dict[str, Any], source)
    coerce(dict[str, list[int]], {b"a": source[b"a"]})

    assert source == snapshot


# --- 形状推断 ---


@pytest.mark.parametrize(
    ("annotation", "expected"),
    [
        (int, "INT64"),
        (bool, "BOOL"),
        (float, "DOUBLE"),
        (str, "STRING"),
        (bytes, "BYTES"),
        (list[int], "LIST[INT64]"),
        (tuple[str, ...], "LIST[STRING]"),
        (dict[str, list[bytes]], "MAP[LIST[BYTES]]"),
        (int | None, "OPTIONAL[INT64]"),
        (UINT16, "UINT16"),
        (Any, "ANY"),
    ],
)
def test_resolve_shape(annotation: Any, expected: str) -> None:
    """resolve_shape() 从类型注解推断形状."""
    assert resolve_shape(annotation).describe() == expected


@pytest.mark.parametrize(
    "annotation",
    [int | str, tuple[int, str], dict[int, str], set[int], "Forward"],
)
def test_resolve_shape_unsupported(annotation: Any) -> None:
    """没有对应形状的注解应报 TypeError."""
    with pytest.raises(TypeError):
        resolve_shape(annotation)


def test_container_specialization_cached() -> None:
    """同一参数的容器形状是同一个类."""
    assert LIST[INT32] is LIST[INT32]
    assert LIST[int] is LIST[INT64]
    assert issubclass(LIST[INT32], LIST)


def test_kind_of() -> None:
    """kind_of() 返回错误信息中使用的类别名."""
    assert kind_of(None) == "nil"
    assert kind_of(True) == "bool"
    assert kind_of(1) == "integer"
    assert kind_of(b"") == "string"
    assert kind_of("") == "text"
    assert kind_of(()) == "list"
    assert kind_of({}) == "dict"


# --- fill ---


def test_fill_updates_present_fields() -> None:
    """fill() 只改写源中存在的字段."""
    peer = Peer(ip="10.0.0.1", port=1, peer_id=b"old")

    result = fill(peer, {b"port": 70000, b"peer id": b"abc", b"extra": 1})

    assert result is peer
    assert peer.ip == "10.0.0.1"
    assert peer.port == 70000 - 65536
    assert peer.peer_id == b"abc"


def test_fill_requires_dict() -> None:
    """fill() 的源必须是字典."""
    with pytest.raises(BencodeCoercionError, match="list to Peer"):
        fill(Peer(), [1, 2])


def test_fill_reports_field() -> None:
    """fill() 转换失败时报告字段名."""
    with pytest.raises(BencodeCoercionError) as exc:
        fill(Peer(), {b"port": b"http"})

    assert exc.value.loc == ["port"]
