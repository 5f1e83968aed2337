"""Bencode 特定的异常类.

该模块为 bencstruct 库定义了异常层次结构.
底层数据源/数据汇抛出的 I/O 异常 (OSError 等) 不会被包装, 原样传播给调用方.
"""


class BencodeError(Exception):
    """所有 Bencode 异常的基类."""

    pass


class BencodeEncodeError(BencodeError):
    """序列化失败时抛出.

    Case:
        - 值的类型没有对应的线格式映射.
        - 整数超出可编码范围.
        - 循环引用.
    """

    pass


class BencodeDecodeError(BencodeError):
    """反序列化失败时抛出 (语法错误).

    Case:
        - 意外的字节.
        - 缺失或不匹配的终止符.
        - 字典元素个数为奇数, 或字典键不是字节串.
        - 声明的字符串长度为负数或数据不足.
    """

    def __init__(
        self,
        msg: str,
        pos: int | None = None,
        loc: list[str | int] | None = None,
    ) -> None:
        """初始化解码错误.

        Args:
            msg: 错误描述信息.
            pos: 检测到错误时的字节偏移量.
            loc: 错误发生的位置路径 (字典键或列表索引).
        """
        super().__init__(msg)
        self.pos = pos
        self.loc = loc or []

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.loc:
            loc_str = ".".join(str(x) for x in self.loc)
            return f"{base_msg} (at {loc_str})"
        return base_msg


class BencodePartialDataError(BencodeDecodeError):
    """输入数据不完整时抛出.

    在声明的长度或终止符之前输入已经耗尽, 例如 `i3`, `5:ab` 或未闭合的列表.
    """

    pass


class BencodeTypeError(BencodeEncodeError, TypeError):
    """类型不受支持时抛出."""

    pass


class BencodeValueError(BencodeEncodeError, ValueError):
    """值无效时抛出 (如超出范围)."""

    pass


class BencodeCoercionError(BencodeError, ValueError):
    """无法将解码值转换为目标类型时抛出.

    Case:
        - 源类型与目标类型之间没有转换规则.
        - 转换过程中文本到数值的解析失败.
    """

    def __init__(self, msg: str, loc: list[str | int] | None = None) -> None:
        """初始化转换错误.

        Args:
            msg: 错误描述信息.
            loc: 出错字段的路径 (字段名或列表索引).
        """
        super().__init__(msg)
        self.loc = loc or []

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.loc:
            loc_str = ".".join(str(x) for x in self.loc)
            return f"{base_msg} (at {loc_str})"
        return base_msg
