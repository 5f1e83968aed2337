"""Bencode API模块.

提供用于 Bencode 序列化和反序列化的高级接口 `dumps`, `loads`, `dump`, `load`,
以及用于自定义解码的底层 `next_token`.
"""

import io
from collections.abc import Callable
from typing import IO, Any, TypeVar, overload

from .config import BencodeConfig, BytesMode
from .coerce import coerce
from .decoder import DataReader, GenericDecoder, GenericValue, Token, Tokenizer
from .encoder import BencodeEncoder
from .exceptions import BencodeDecodeError
from .log import get_hexdump, logger
from .options import BencodeOption

T = TypeVar("T")


def _is_safe_text(text: str) -> bool:
    r"""判断字符串是否为'人类可读文本'.

    允许所有可打印字符以及 \n, \r, \t; 拒绝其他控制字符.
    """
    return all(c.isprintable() or c in "\n\r\t" for c in text)


def convert_bytes_recursive(obj: Any, mode: BytesMode = "raw") -> Any:
    """递归处理通用值树中的字节串 (键和值).

    - `'raw'`: 保持所有 bytes 不变.
    - `'string'`: 能按 UTF-8 解码的 bytes 全部转换为 str.
    - `'auto'`: 仅当解码结果是可读文本时转换为 str.
    """
    if mode == "raw":
        return obj

    if isinstance(obj, bytes):
        try:
            text = obj.decode("utf-8")
        except UnicodeDecodeError:
            return obj
        if mode == "auto" and not _is_safe_text(text):
            return obj
        return text

    if isinstance(obj, list):
        return [convert_bytes_recursive(v, mode) for v in obj]

    if isinstance(obj, dict):
        return {
            convert_bytes_recursive(k, mode): convert_bytes_recursive(v, mode)
            for k, v in obj.items()
        }

    return obj


def dumps(
    obj: Any,
    option: BencodeOption = BencodeOption.NONE,
    default: Callable[[Any], Any] | None = None,
) -> bytes:
    """序列化对象为 Bencode 字节数据.

    Args:
        obj: 要序列化的 Python 对象. 支持 int, float, str, bytes, list, tuple,
            以 str/bytes 为键的映射, `BencodeStruct` 实例, dataclass 实例和 None.
        option: 序列化选项 (如 `BencodeOption.OMIT_NONE`).
        default: 自定义序列化函数, 用于处理无法默认序列化的类型.
            函数签名应为 `def default(obj: Any) -> Any`.

    Returns:
        bytes: 序列化后的二进制数据. 字典总是按键的字节顺序输出.

    Raises:
        BencodeTypeError: 遇到不支持的类型.
        BencodeValueError: 整数越界, 键冲突或循环引用.

    Examples:
        >>> dumps({"foo": 42, "bar": "spam"})
        b'd3:bar4:spam3:fooi42ee'
    """
    config = BencodeConfig.from_params(option=option, default=default)
    encoder = BencodeEncoder(config)
    encoder.encode(obj)
    return encoder.writer.get_bytes()


def dump(
    obj: Any,
    fp: IO[bytes],
    option: BencodeOption = BencodeOption.NONE,
    default: Callable[[Any], Any] | None = None,
) -> None:
    """序列化对象为 Bencode 字节并增量写入文件.

    Args:
        obj: 要序列化的对象.
        fp: 文件类对象, 必须实现 `write(bytes)` 方法.
        option: 序列化选项.
        default: 未知类型的默认处理函数.
    """
    config = BencodeConfig.from_params(option=option, default=default)
    BencodeEncoder(config, sink=fp).encode(obj)


def _decode(
    reader: DataReader,
    target: Any,
    config: BencodeConfig,
) -> Any:
    decoder = GenericDecoder(reader, option=config.option, max_depth=config.max_depth)
    tree = decoder.decode()
    if tree is None:
        return None

    if target is not None:
        return coerce(target, tree)
    return convert_bytes_recursive(tree, mode=config.bytes_mode)


@overload
def loads(
    data: bytes | bytearray | memoryview | str,
    target: None = None,
    option: BencodeOption = BencodeOption.NONE,
    *,
    bytes_mode: BytesMode = "raw",
    max_depth: int | None = None,
) -> GenericValue | None: ...


@overload
def loads(
    data: bytes | bytearray | memoryview | str,
    target: type[T],
    option: BencodeOption = BencodeOption.NONE,
    *,
    bytes_mode: BytesMode = "raw",
    max_depth: int | None = None,
) -> T | None: ...


def loads(
    data: bytes | bytearray | memoryview | str,
    target: Any = None,
    option: BencodeOption = BencodeOption.NONE,
    *,
    bytes_mode: BytesMode = "raw",
    max_depth: int | None = None,
) -> Any:
    """反序列化 Bencode 数据为 Python 对象.

    Args:
        data: 输入数据. str 会先按 UTF-8 编码为字节.
        target: 目标类型.
            - `None` (默认): 返回通用值树 (bytes, int, list, dict).
            - `BencodeStruct` 子类, 形状类或类型注解 (如 `list[int]`):
              解码后转换为该类型, 见 `bencstruct.coerce.coerce`.
        option: 反序列化选项 (如 `BencodeOption.STRICT`).
        bytes_mode: 字节串的处理模式 (仅在 target 为 None 时有效).
            - `'raw'`: 保持所有 bytes 类型不变.
            - `'string'`: 能按 UTF-8 解码的字节串全部转换为 str.
            - `'auto'`: 仅把可读文本转换为 str.
        max_depth: 允许的最大嵌套深度.

    Returns:
        解码结果; 输入为空时返回 None.

    Raises:
        BencodeDecodeError: 数据格式错误, 或在值之后还有多余数据.
        BencodePartialDataError: 数据不完整.
        BencodeCoercionError: 无法转换为目标类型.

    Examples:
        >>> loads(b"l4:spami42ee")
        [b'spam', 42]
        >>> loads(b"d3:bar4:spame", bytes_mode="string")
        {'bar': 'spam'}
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    config = BencodeConfig.from_params(
        option=option, bytes_mode=bytes_mode, max_depth=max_depth
    )
    reader = DataReader(data)
    try:
        result = _decode(reader, target, config)
        if not reader.eof:
            pos = reader.position
            raise BencodeDecodeError(
                f"trailing data after value at byte {pos}", pos=pos
            )
    except BencodeDecodeError as e:
        if e.pos is not None:
            logger.debug(get_hexdump(data, e.pos))
        raise
    return result


def load(
    fp: IO[bytes],
    target: Any = None,
    option: BencodeOption = BencodeOption.NONE,
    *,
    bytes_mode: BytesMode = "raw",
    max_depth: int | None = None,
) -> Any:
    """从字节流读取并反序列化一个 Bencode 值.

    值之后的数据不会被检查; 由于内部缓冲, fp 的读取位置可能超过该值的末尾.
    需要连续读取多个值时, 请复用同一个 `GenericDecoder(DataReader(fp))`.

    Args:
        fp: 打开的二进制文件对象.
        target: 目标类型, 同 `loads`.
        option: 反序列化选项.
        bytes_mode: 字节处理模式.
        max_depth: 允许的最大嵌套深度.

    Returns:
        解析后的对象; 流为空时返回 None.
    """
    if isinstance(fp, io.TextIOBase):
        raise TypeError("load() requires a binary file object")

    config = BencodeConfig.from_params(
        option=option, bytes_mode=bytes_mode, max_depth=max_depth
    )
    return _decode(DataReader(fp), target, config)


def next_token(
    reader: DataReader, option: BencodeOption = BencodeOption.NONE
) -> Token | None:
    """读取下一个原始 Token, 用于自定义解码.

    Args:
        reader: 字节游标. 连续调用时必须复用同一个 reader.
        option: 扫描选项 (如 `BencodeOption.STRICT_INTEGERS`).

    Returns:
        `Delim`, int 或 bytes; 输入结束时返回 None.

    Examples:
        >>> reader = DataReader(b"li1ee")
        >>> [next_token(reader) for _ in range(4)]
        [Delim.LIST_OPEN, 1, Delim.END, None]
    """
    return Tokenizer(reader, int(option)).next_token()
