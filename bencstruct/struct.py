"""Bencode 结构体定义模块."""

from typing import (
    Any,
    ClassVar,
    TypeVar,
    cast,
)

from pydantic import BaseModel, Field, model_validator
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined
from typing_extensions import Self, dataclass_transform

from .options import BencodeOption
from .types import BencodeType, resolve_shape

S = TypeVar("S", bound="BencodeStruct")


def BencodeField(
    default: Any = PydanticUndefined,
    *,
    name: str | None = None,
    bencode_type: type[BencodeType] | None = None,
    default_factory: Any | None = None,
) -> Any:
    """创建 Bencode 结构体字段配置.

    这是一个 Pydantic `Field` 的包装函数, 用于注入字典键名和目标形状。
    不使用 `BencodeField` 的字段同样有效: 键名取属性名, 形状由注解推断。

    Args:
        default: 字段的静态默认值。
        name: 字典中使用的外部键名, 默认为属性名。
            当键名不是合法的 Python 标识符时 (如 `"piece length"`) 必须指定。
        bencode_type: 显式指定目标形状, 用于覆盖由注解推断的形状。
            例如 `int` 默认推断为 `INT64`, 指定 `types.UINT8` 可按单字节截断。
        default_factory: 用于生成默认值的无参可调用对象。

    Returns:
        Any: 包含 Bencode 元数据的 Pydantic FieldInfo 对象。

    Examples:
        >>> from bencstruct import BencodeStruct, BencodeField, types
        >>> class Info(BencodeStruct):
        ...     name: str
        ...     piece_length: int = BencodeField(name="piece length")
        ...     flags: int = BencodeField(0, bencode_type=types.UINT8)
    """
    if name is not None and not name:
        raise ValueError("Bencode field name cannot be empty")

    json_schema_extra = {
        "bencode_name": name,
        "bencode_type": bencode_type,
    }

    kwargs: dict[str, Any] = {
        "json_schema_extra": json_schema_extra,
    }

    if default is not PydanticUndefined:
        kwargs["default"] = default

    if default_factory is not None:
        kwargs["default_factory"] = default_factory

    return cast(Any, Field)(**kwargs)


class BencodeModelField:
    """表示一个 BencodeStruct 模型字段的元数据.

    存储了字典键 (原始字节) 和解析后的目标形状。
    """

    __slots__ = ("has_default", "key", "name", "shape")

    def __init__(
        self, name: str, key: bytes, shape: type[BencodeType], has_default: bool
    ):
        self.name = name
        self.key = key
        self.shape = shape
        self.has_default = has_default

    def __repr__(self) -> str:
        shape = self.shape.describe()
        return f"BencodeModelField({self.name!r}, key={self.key!r}, shape={shape})"

    @classmethod
    def from_field_info(cls, name: str, field_info: FieldInfo) -> Self:
        """从 FieldInfo 创建 BencodeModelField."""
        extra = field_info.json_schema_extra
        if not isinstance(extra, dict):
            extra = {}

        key_name = cast(str | None, extra.get("bencode_name")) or name
        shape = cast(type[BencodeType] | None, extra.get("bencode_type"))

        if shape is None:
            shape = resolve_shape(field_info.annotation)
        elif not (isinstance(shape, type) and issubclass(shape, BencodeType)):
            raise TypeError(f"Invalid bencode_type: {shape}")

        return cls(
            name,
            key_name.encode("utf-8"),
            shape,
            not field_info.is_required(),
        )


def prepare_fields(fields: dict[str, FieldInfo]) -> dict[str, BencodeModelField]:
    """准备 Bencode 字段映射.

    遍历 Pydantic 的 fields, 提取键名与形状, 并检查键名是否重复。
    保持字段的声明顺序 (编码时会再按键排序)。
    """
    bencode_fields: dict[str, BencodeModelField] = {}
    seen: dict[bytes, str] = {}
    for name, field in fields.items():
        if field.exclude is True:
            continue
        model_field = BencodeModelField.from_field_info(name, field)
        if model_field.key in seen:
            raise ValueError(
                f"Fields '{seen[model_field.key]}' and '{name}' "
                f"share the key {model_field.key!r}"
            )
        seen[model_field.key] = name
        bencode_fields[name] = model_field
    return bencode_fields


@dataclass_transform(kw_only_default=True, field_specifiers=(BencodeField,))
class BencodeStructMeta(type(BaseModel)):
    """BencodeStruct 的元类, 用于收集字段信息."""

    def __new__(  # noqa: D102
        mcs,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        **kwargs: Any,
    ):
        cls = super().__new__(mcs, name, bases, namespace, **kwargs)
        cls.__bencode_fields__ = None
        if name != "BencodeStruct" and cls.__pydantic_complete__:
            try:
                cls.__bencode_fields__ = prepare_fields(cls.model_fields)
            except TypeError:
                # 前向引用尚未解析, 推迟到第一次使用时
                pass
        return cls


class BencodeStruct(BaseModel, BencodeType, metaclass=BencodeStructMeta):
    """Bencode 结构体基类.

    继承自 `pydantic.BaseModel`, 提供声明式的记录定义方式。
    解码得到的字典通过字段的外部键名映射到属性上:

    - 键存在: 值递归转换为字段的形状, 失败时报告出错的字段。
    - 键缺失: 字段保持默认值; 没有默认值的字段取其形状的零值 (0, "", [] 等)。
    - 多余的键: 忽略。

    Examples:
        >>> from bencstruct import BencodeStruct, BencodeField
        >>> class File(BencodeStruct):
        ...     length: int
        ...     path: list[str]
        >>> f = File.model_validate_bencode(b"d6:lengthi10e4:pathl1:a1:bee")
        >>> f.path
        ['a', 'b']
        >>> f.model_dump_bencode()
        b'd6:lengthi10e4:pathl1:a1:bee'
    """

    __bencode_fields__: ClassVar[dict[str, BencodeModelField] | None] = None

    @classmethod
    def bencode_fields(cls) -> dict[str, BencodeModelField]:
        """返回属性名到字段元数据的映射 (按声明顺序)."""
        fields = cls.__dict__.get("__bencode_fields__")
        if fields is None:
            if not cls.__pydantic_complete__:
                cls.model_rebuild()
            fields = prepare_fields(cls.model_fields)
            cls.__bencode_fields__ = fields
        return fields

    @classmethod
    def coerce(cls, value: Any) -> Self:
        """把通用字典转换为结构体实例."""
        if isinstance(value, cls):
            return value
        from .coerce import coerce_record

        return coerce_record(cls, value)

    @classmethod
    def zero(cls) -> Self:
        """所有字段都取默认值或零值的实例."""
        return cls.coerce({})

    @classmethod
    def describe(cls) -> str:
        return cls.__name__

    def model_dump_bencode(self, option: BencodeOption = BencodeOption.NONE) -> bytes:
        """序列化为 Bencode 字节数据.

        Args:
            option: 编码选项 (如 `BencodeOption.OMIT_NONE`).

        Returns:
            bytes: 序列化后的二进制数据.
        """
        from .api import dumps

        return dumps(self, option=option)

    @classmethod
    def model_validate_bencode(
        cls: type[S],
        data: bytes | bytearray | memoryview | str | dict[Any, Any],
        option: BencodeOption = BencodeOption.NONE,
    ) -> S:
        """验证 Bencode 数据并创建实例.

        支持从二进制数据或预先解码的通用字典创建实例.

        Raises:
            BencodeDecodeError: 字节数据解析失败.
            BencodeCoercionError: 数据无法转换为该结构体.
        """
        if isinstance(data, dict):
            return cls.coerce(data)

        from .api import loads

        return cast(S, loads(data, target=cls, option=option))

    @model_validator(mode="before")
    @classmethod
    def _bencode_pre_validate(cls, value: Any) -> Any:
        """验证前钩子: 负责字节解码和键名映射."""
        if isinstance(value, bytes | bytearray | memoryview):
            from .api import loads

            value = loads(value)

        if isinstance(value, dict) and any(isinstance(k, bytes) for k in value):
            from .coerce import record_values

            return record_values(cls, value)

        return value
