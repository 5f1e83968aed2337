"""Bencode 编解码库.

提供了 BencodeStruct 定义、序列化(dumps)、反序列化(loads)
以及把解码结果转换为具体类型的转换引擎(coerce).
"""

from .adapter import BencodeTypeAdapter
from .api import dump, dumps, load, loads, next_token
from .coerce import coerce, fill
from .config import BencodeConfig, BytesMode
from .const import Delim
from .decoder import DataReader, GenericDecoder, Tokenizer
from .encoder import BencodeEncoder
from .exceptions import (
    BencodeCoercionError,
    BencodeDecodeError,
    BencodeEncodeError,
    BencodeError,
    BencodePartialDataError,
    BencodeTypeError,
    BencodeValueError,
)
from .options import BencodeOption
from .struct import BencodeField, BencodeStruct
from .types import (
    BOOL,
    BYTES,
    DOUBLE,
    FLOAT,
    INT,
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
    BencodeType,
)

__version__ = "0.9.2"

__all__ = [
    "BOOL",
    "BYTES",
    "DOUBLE",
    "FLOAT",
    "INT",
    "INT8",
    "INT16",
    "INT32",
    "INT64",
    "LIST",
    "MAP",
    "STRING",
    "UINT8",
    "UINT16",
    "UINT32",
    "UINT64",
    "BencodeCoercionError",
    "BencodeConfig",
    "BencodeDecodeError",
    "BencodeEncodeError",
    "BencodeEncoder",
    "BencodeError",
    "BencodeField",
    "BencodeOption",
    "BencodePartialDataError",
    "BencodeStruct",
    "BencodeType",
    "BencodeTypeAdapter",
    "BencodeTypeError",
    "BencodeValueError",
    "BytesMode",
    "DataReader",
    "Delim",
    "GenericDecoder",
    "Tokenizer",
    "__version__",
    "coerce",
    "dump",
    "dumps",
    "fill",
    "load",
    "loads",
    "next_token",
]
