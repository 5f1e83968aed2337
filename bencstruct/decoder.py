"""Bencode 解码器实现.

该模块提供带回退能力的字节游标 `DataReader`,
逐个产生 Token 的 `Tokenizer`, 构建通用值树的 `GenericDecoder`,
以及保留线格式顺序和偏移量的 `NodeDecoder` (用于命令行树视图).
"""

import re
from dataclasses import dataclass, field
from typing import IO, Any, Union

from .const import (
    BENCODE_COLON,
    BENCODE_DICT,
    BENCODE_END,
    BENCODE_INT,
    BENCODE_LIST,
    BENCODE_MINUS,
    DEFAULT_MAX_DEPTH,
    INT64_MAX,
    INT64_MIN,
    MAX_STRING_LENGTH,
    Delim,
)
from .exceptions import BencodeDecodeError, BencodePartialDataError
from .log import logger
from .options import BencodeOption

# Token: 定界符, 整数或字节串
Token = Union[Delim, int, bytes]

# 通用值: 字节串, 整数, 列表或以字节串为键的字典
GenericValue = Union[bytes, int, list["GenericValue"], dict[bytes, "GenericValue"]]

_INTEGER_RE = re.compile(rb"-?[0-9]+")
_NON_CANONICAL_RE = re.compile(rb"-?0[0-9]|-0$")

_DEFAULT_CHUNK_SIZE = 64 * 1024


def _describe_byte(b: int) -> str:
    if 32 <= b < 127:
        return repr(chr(b))
    return f"0x{b:02x}"


class DataReader:
    """带缓冲和位置跟踪的字节游标.

    包装任意实现了 `read(n)` 的字节源 (文件, socket 文件对象, BytesIO),
    也可以直接包装内存中的 bytes. 支持回退刚刚读取的一个字节.
    """

    __slots__ = (
        "_buffer",
        "_can_unread",
        "_chunk_size",
        "_discarded",
        "_offset",
        "_source",
    )

    _buffer: bytearray
    _offset: int
    _discarded: int
    _source: IO[bytes] | None
    _chunk_size: int
    _can_unread: bool

    def __init__(
        self,
        source: bytes | bytearray | memoryview | IO[bytes],
        chunk_size: int = _DEFAULT_CHUNK_SIZE,
    ):
        """初始化 DataReader.

        Args:
            source: 内存中的二进制数据, 或带有 `read(n)` 方法的字节流.
            chunk_size: 每次从字节流读取的最大字节数.
        """
        if isinstance(source, bytes | bytearray | memoryview):
            self._buffer = bytearray(source)
            self._source = None
        else:
            self._buffer = bytearray()
            self._source = source
        self._offset = 0
        self._discarded = 0
        self._chunk_size = chunk_size
        self._can_unread = False

    def _fill(self) -> bool:
        """从底层字节源补充缓冲区, 源已耗尽时返回 False."""
        if self._source is None:
            return False

        # read1() 返回已就绪的数据, 不会在管道或套接字上等待凑满
        read = getattr(self._source, "read1", None) or self._source.read
        chunk = read(self._chunk_size)
        if not chunk:
            self._source = None
            return False

        # 丢弃已消费的数据, 但保留最后一个字节以支持 unread_one()
        keep_from = max(self._offset - 1, 0)
        if keep_from:
            del self._buffer[:keep_from]
            self._offset -= keep_from
            self._discarded += keep_from

        self._buffer.extend(chunk)
        return True

    def read_byte(self) -> int | None:
        """读取一个字节, 输入结束时返回 None."""
        while self._offset >= len(self._buffer):
            if not self._fill():
                self._can_unread = False
                return None

        val = self._buffer[self._offset]
        self._offset += 1
        self._can_unread = True
        return val

    def unread_one(self) -> None:
        """回退刚刚通过 read_byte() 读取的字节.

        Raises:
            RuntimeError: 如果上一次操作不是成功的单字节读取.
        """
        if not self._can_unread:
            raise RuntimeError("unread_one() must directly follow read_byte()")
        self._offset -= 1
        self._can_unread = False

    def read(self, length: int) -> bytes:
        """精确读取 `length` 个字节.

        会跨越底层字节源的多次部分读取, 直到收集到足够的数据.

        Raises:
            BencodeDecodeError: 如果 length 为负数.
            BencodePartialDataError: 如果字节源在凑齐 length 个字节之前耗尽.
        """
        if length < 0:
            raise BencodeDecodeError(
                f"Cannot read negative bytes: {length}", pos=self.position
            )

        self._can_unread = False
        while len(self._buffer) - self._offset < length:
            if not self._fill():
                break

        available = len(self._buffer) - self._offset
        if available < length:
            start = self.position
            self._offset = len(self._buffer)
            raise BencodePartialDataError(
                f"short read: expected {length} bytes, got {available} "
                f"at byte {start}",
                pos=start,
            )

        start = self._offset
        self._offset += length
        return bytes(self._buffer[start : self._offset])

    @property
    def position(self) -> int:
        """从输入开头算起的当前字节偏移量 (仅用于诊断信息)."""
        return self._discarded + self._offset

    @property
    def eof(self) -> bool:
        """检查是否到达流末尾."""
        if self._offset < len(self._buffer):
            return False
        return not self._fill()


class Tokenizer:
    """Bencode 词法扫描器.

    每次调用 `next_token()` 读取一个判别字节并产生一个 Token:
    `Delim`, `int` 或 `bytes`.
    """

    __slots__ = ("_reader", "_strict_integers")

    def __init__(self, reader: DataReader, option: int = 0):
        self._reader = reader
        self._strict_integers = bool(option & BencodeOption.STRICT_INTEGERS)

    @property
    def reader(self) -> DataReader:
        """底层字节游标."""
        return self._reader

    def next_token(self) -> Token | None:
        """读取下一个 Token.

        Returns:
            Token, 如果在读取第一个字节时输入已结束则返回 None.

        Raises:
            BencodeDecodeError: 遇到意外字节或格式错误的整数/长度.
            BencodePartialDataError: Token 读到一半时输入结束.
        """
        reader = self._reader
        b = reader.read_byte()
        if b is None:
            return None

        if b == BENCODE_INT:
            return self._read_integer(BENCODE_END, "integer")
        if b == BENCODE_LIST:
            return Delim.LIST_OPEN
        if b == BENCODE_DICT:
            return Delim.DICT_OPEN
        if b == BENCODE_END:
            return Delim.END
        if 0x30 <= b <= 0x39:
            reader.unread_one()
            return self._read_string()

        raise BencodeDecodeError(
            f"unexpected byte {_describe_byte(b)} at byte {reader.position - 1}",
            pos=reader.position - 1,
        )

    def _read_string(self) -> bytes:
        start = self._reader.position
        length = self._read_integer(BENCODE_COLON, "string length")
        if length < 0:
            raise BencodeDecodeError(
                f"negative length specified for string at byte {start}", pos=start
            )
        if length > MAX_STRING_LENGTH:
            raise BencodeDecodeError(
                f"String too long: {length} at byte {start}", pos=start
            )
        return self._reader.read(length)

    def _read_integer(self, terminator: int, what: str) -> int:
        """累积数字和 '-' 直到终止符, 并解析为有符号 64 位整数."""
        reader = self._reader
        start = reader.position
        digits = bytearray()

        while True:
            b = reader.read_byte()
            if b is None:
                raise BencodePartialDataError(
                    f"unexpected end of input in {what} starting at byte {start}",
                    pos=reader.position,
                )
            if 0x30 <= b <= 0x39 or b == BENCODE_MINUS:
                digits.append(b)
                continue
            if b == terminator:
                break
            raise BencodeDecodeError(
                f"unexpected byte {_describe_byte(b)} in {what} "
                f"at byte {reader.position - 1}",
                pos=reader.position - 1,
            )

        raw = bytes(digits)
        if not _INTEGER_RE.fullmatch(raw):
            raise BencodeDecodeError(
                f"invalid {what} {raw.decode('ascii')!r} at byte {start}", pos=start
            )
        if self._strict_integers and _NON_CANONICAL_RE.match(raw):
            raise BencodeDecodeError(
                f"non-canonical {what} {raw.decode('ascii')!r} at byte {start}",
                pos=start,
            )

        value = int(raw)
        if not INT64_MIN <= value <= INT64_MAX:
            raise BencodeDecodeError(
                f"{what} out of range: {raw.decode('ascii')} at byte {start}",
                pos=start,
            )
        return value


class GenericDecoder:
    """Bencode 数据的无模式解码器.

    递归下降地把 Token 序列构建为通用值树:
    bytes, int, list 和以 bytes 为键的 dict.
    同一个实例可以重复调用 `decode()` 读取流中连续的多个顶层值.
    """

    __slots__ = (
        "_max_depth",
        "_reader",
        "_strict_dict_keys",
        "_tokenizer",
    )

    def __init__(
        self,
        reader: DataReader,
        option: int = 0,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self._reader = reader
        self._tokenizer = Tokenizer(reader, option)
        self._max_depth = max_depth
        self._strict_dict_keys = bool(option & BencodeOption.STRICT_DICT_KEYS)

    @property
    def reader(self) -> DataReader:
        """底层字节游标."""
        return self._reader

    def next_token(self) -> Token | None:
        """读取下一个原始 Token (用于自定义解码)."""
        return self._tokenizer.next_token()

    def decode(self, suppress_log: bool = False) -> GenericValue | None:
        """解码一个完整的顶层值.

        Returns:
            解码得到的通用值; 如果在第一个 Token 之前输入就已结束, 返回 None.
        """
        if not suppress_log:
            logger.debug("[GenericDecoder] 开始解码 (位置 %d)", self._reader.position)

        try:
            token = self._tokenizer.next_token()
            if token is None:
                if not suppress_log:
                    logger.debug("[GenericDecoder] 没有更多数据")
                return None

            try:
                value = self._build(token, 0)
            except RecursionError:
                raise _too_deep(self._reader.position) from None
            if not suppress_log:
                logger.debug(
                    "[GenericDecoder] 成功解码 %s (结束于位置 %d)",
                    type(value).__name__,
                    self._reader.position,
                )
            return value
        except BencodeDecodeError as e:
            if not suppress_log:
                logger.error("[GenericDecoder] 解码错误: %s", e)
            raise

    def _build(self, token: Token, depth: int) -> GenericValue:
        """把一个 Token 构建为值, 容器在同一帧内收集子元素."""
        if token is Delim.END:
            pos = self._reader.position - 1
            raise BencodeDecodeError(f"unexpected end delimiter at byte {pos}", pos=pos)
        if token is not Delim.LIST_OPEN and token is not Delim.DICT_OPEN:
            return token

        what = "list" if token is Delim.LIST_OPEN else "dict"
        depth += 1
        self._check_depth(depth)

        items: list[GenericValue] = []
        while True:
            child = self._tokenizer.next_token()
            if child is None:
                raise _end_of_input(what, len(items), self._reader.position)
            if child is Delim.END:
                break
            items.append(self._build(child, depth))

        if what == "list":
            return items
        return self._pair_up(items)

    def _check_depth(self, depth: int) -> None:
        if depth > self._max_depth:
            pos = self._reader.position
            raise BencodeDecodeError(
                f"nesting depth exceeds {self._max_depth} at byte {pos}", pos=pos
            )

    def _pair_up(self, items: list[GenericValue]) -> dict[bytes, GenericValue]:
        pos = self._reader.position
        if len(items) & 1:
            raise BencodeDecodeError(
                f"odd number of elements in dict at byte {pos}", pos=pos
            )

        result: dict[bytes, GenericValue] = {}
        for i in range(0, len(items), 2):
            key = items[i]
            if not isinstance(key, bytes):
                raise BencodeDecodeError(
                    f"invalid type for dictionary key {_kind_name(key)} "
                    f"at byte {pos}, must be a string",
                    pos=pos,
                )
            if self._strict_dict_keys and key in result:
                raise BencodeDecodeError(
                    f"duplicate dictionary key {key!r} at byte {pos}", pos=pos
                )
            result[key] = items[i + 1]
        return result


def _too_deep(pos: int) -> BencodeDecodeError:
    # max_depth 超过解释器的递归上限时
    return BencodeDecodeError(f"nesting too deep at byte {pos}", pos=pos)


def _end_of_input(what: str, count: int, pos: int) -> BencodePartialDataError:
    if what == "dict" and count & 1:
        # 键已读完但缺少值
        return BencodePartialDataError(
            f"odd number of elements in dict at byte {pos} (unexpected end of input)",
            pos=pos,
        )
    return BencodePartialDataError(
        f"unexpected end of input in {what} at byte {pos}", pos=pos
    )


def _kind_name(value: Any) -> str:
    if isinstance(value, bytes):
        return "string"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, list):
        return "list"
    if isinstance(value, dict):
        return "dict"
    return type(value).__name__


@dataclass
class BencodeNode:
    """树视图中的一个节点.

    Attributes:
        kind: "integer", "string", "list" 或 "dict".
        offset: 节点在输入中的起始字节偏移量.
        length: 节点在输入中占用的字节数.
        value: 标量节点的值 (int 或 bytes).
        children: 列表为子节点列表; 字典为 (键节点, 值节点) 列表, 保持线格式顺序.
    """

    kind: str
    offset: int
    length: int = 0
    value: Any = None
    children: list[Any] = field(default_factory=list)


class NodeDecoder(GenericDecoder):
    """保留线格式顺序和字节偏移量的解码器.

    与 `GenericDecoder` 语法相同, 但字典不会被折叠成 dict,
    重复的键和原始顺序都会保留, 便于调试和展示.
    """

    __slots__ = ()

    def decode(self, suppress_log: bool = False) -> BencodeNode | None:  # type: ignore[override]
        """解码一个顶层值为节点树."""
        if not suppress_log:
            logger.debug("[NodeDecoder] 开始解码 (位置 %d)", self._reader.position)
        try:
            start = self._reader.position
            token = self._tokenizer.next_token()
            if token is None:
                return None
            try:
                return self._read_node(token, start, 0)
            except RecursionError:
                raise _too_deep(self._reader.position) from None
        except BencodeDecodeError as e:
            if not suppress_log:
                logger.error("[NodeDecoder] 解码错误: %s", e)
            raise

    def decode_all(self, suppress_log: bool = False) -> list[BencodeNode]:
        """解码流中所有连续的顶层值."""
        nodes = []
        while (node := self.decode(suppress_log=suppress_log)) is not None:
            nodes.append(node)
        return nodes

    def _read_node(self, token: Token, start: int, depth: int) -> BencodeNode:
        if token is Delim.LIST_OPEN or token is Delim.DICT_OPEN:
            self._check_depth(depth + 1)
            what = "list" if token is Delim.LIST_OPEN else "dict"
            children: list[BencodeNode] = []
            while True:
                child_start = self._reader.position
                child = self._tokenizer.next_token()
                if child is None:
                    raise _end_of_input(what, len(children), self._reader.position)
                if child is Delim.END:
                    break
                children.append(self._read_node(child, child_start, depth + 1))

            node = BencodeNode(what, start, self._reader.position - start)
            if what == "list":
                node.children = children
                return node

            if len(children) & 1:
                pos = self._reader.position
                raise BencodeDecodeError(
                    f"odd number of elements in dict at byte {pos}", pos=pos
                )
            for key in children[::2]:
                if key.kind != "string":
                    raise BencodeDecodeError(
                        f"invalid type for dictionary key {key.kind} "
                        f"at byte {key.offset}, must be a string",
                        pos=key.offset,
                    )
            node.children = list(zip(children[::2], children[1::2]))
            return node

        if token is Delim.END:
            raise BencodeDecodeError(
                f"unexpected end delimiter at byte {start}", pos=start
            )

        kind = "string" if isinstance(token, bytes) else "integer"
        return BencodeNode(kind, start, self._reader.position - start, token)
