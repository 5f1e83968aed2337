"""通用值到目标类型的转换引擎.

解码器产生的通用值树 (bytes, int, list, dict) 不携带类型信息,
本模块根据调用方给出的目标形状 (见 `bencstruct.types`) 或类型注解,
把它转换为字符串, 指定宽度的整数, 浮点数, 列表和结构体。
转换过程不会修改源树。
"""

from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import ValidationError

from .exceptions import BencodeCoercionError
from .log import logger
from .types import coerce_at, kind_of, resolve_shape

if TYPE_CHECKING:
    from .struct import BencodeStruct

S = TypeVar("S", bound="BencodeStruct")

_MISSING = object()


def _lookup(source: dict[Any, Any], key: bytes) -> Any:
    """按原始字节键查找, 对已解码为文本的字典回退到 str 键."""
    if key in source:
        return source[key]
    return source.get(key.decode("utf-8", "surrogateescape"), _MISSING)


def _require_dict(cls: type["BencodeStruct"], source: Any) -> dict[Any, Any]:
    if not isinstance(source, dict):
        raise BencodeCoercionError(
            f"don't know how to coerce {kind_of(source)} to {cls.describe()}"
        )
    return source


def record_values(cls: type["BencodeStruct"], source: Any) -> dict[str, Any]:
    """把通用字典转换为结构体的属性字典.

    缺失且没有默认值的字段取形状的零值; 有默认值的字段留给 Pydantic 填充。

    Raises:
        BencodeCoercionError: 源不是字典, 或某个字段转换失败 (`loc` 指向该字段).
    """
    source = _require_dict(cls, source)
    values: dict[str, Any] = {}
    for name, field in cls.bencode_fields().items():
        raw = _lookup(source, field.key)
        if raw is not _MISSING:
            values[name] = coerce_at(name, field.shape, raw)
        elif not field.has_default:
            values[name] = field.shape.zero()
    return values


def coerce_record(cls: type[S], source: Any) -> S:
    """把通用字典转换为新的结构体实例."""
    values = record_values(cls, source)
    try:
        return cls.model_validate(values)
    except ValidationError as e:
        raise BencodeCoercionError(
            f"validation failed for {cls.describe()}: {e}"
        ) from e


def fill(dest: S, source: Any) -> S:
    """把通用字典的内容就地写入已有的结构体实例.

    只有源中存在的字段会被改写, 其余字段保持原值。
    转换失败时抛出异常, 此前已写入的字段不会回滚。

    Args:
        dest: 调用方预先创建的结构体实例.
        source: 解码得到的通用字典.

    Returns:
        传入的 dest 本身.
    """
    cls = type(dest)
    source = _require_dict(cls, source)
    for name, field in cls.bencode_fields().items():
        raw = _lookup(source, field.key)
        if raw is not _MISSING:
            setattr(dest, name, coerce_at(name, field.shape, raw))
    return dest


def coerce(shape: Any, source: Any) -> Any:
    """把通用值转换为目标形状.

    Args:
        shape: 目标形状 (如 `types.INT32`, `BencodeStruct` 子类)
            或类型注解 (如 `int`, `list[str]`, `dict[str, int]`).
        source: 解码得到的通用值.

    Returns:
        转换后的新值.

    Raises:
        BencodeCoercionError: 没有适用的转换规则, 或文本解析失败.
        TypeError: shape 无法识别.

    Examples:
        >>> coerce(str, 100000)
        '100000'
        >>> coerce(list[int], [b"1", 2])
        [1, 2]
    """
    target = resolve_shape(shape)
    try:
        return target.coerce(source)
    except BencodeCoercionError as e:
        logger.debug("Coercion to %s failed: %s", target.describe(), e)
        raise
