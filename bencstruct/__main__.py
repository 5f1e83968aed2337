"""Bencode命令行工具."""

import json
import logging
import sys
from pathlib import Path
from typing import Any, cast

import click
from rich.console import Console
from rich.syntax import Syntax
from rich.text import Text
from rich.tree import Tree

from . import BytesMode, dumps, loads
from .decoder import BencodeNode, DataReader, NodeDecoder
from .log import logger


def _read_input(encoded: str | None, file_path: Path | None, is_hex: bool) -> bytes:
    """获取输入数据: 命令行参数, 文件或标准输入.

    Raises:
        click.BadParameter: 如果 --hex 指定的数据不是有效的十六进制字符串.
    """
    if file_path:
        data = file_path.read_bytes()
    elif encoded is not None:
        data = encoded.encode("utf-8")
    else:
        data = click.get_binary_stream("stdin").read()

    if is_hex:
        try:
            return bytes.fromhex(data.decode("ascii"))
        except (UnicodeDecodeError, ValueError) as e:
            raise click.BadParameter(f"无效的十六进制格式 - {e}") from e
    return data


def _label(node: BencodeNode, prefix: str = "") -> Text:
    label = Text()
    if prefix:
        label.append(prefix, style="bold blue")
    label.append(f"{node.kind} ", style="cyan")
    label.append(f"@{node.offset}+{node.length}", style="dim")
    if node.kind == "integer":
        label.append(f" {node.value}", style="magenta")
    elif node.kind == "string":
        label.append(f" {_format_bytes(node.value)}", style="green")
    return label


def _format_bytes(value: bytes) -> str:
    try:
        text = value.decode("utf-8")
        if text.isprintable():
            return repr(text)
    except UnicodeDecodeError:
        pass
    return value.hex(" ").upper()


def _build_rich_tree(node: BencodeNode, tree: Tree, prefix: str = "") -> None:
    """递归构建 Rich 树 (字典保持线格式中的原始顺序)."""
    branch = tree.add(_label(node, prefix))
    if node.kind == "list":
        for i, child in enumerate(node.children):
            _build_rich_tree(child, branch, f"[{i}] ")
    elif node.kind == "dict":
        for key, value in node.children:
            _build_rich_tree(value, branch, f"{_format_bytes(key.value)}: ")


def _print_node_tree(nodes: list[BencodeNode], file: Any = None) -> None:
    console = Console(file=file, force_terminal=file is None)
    root = Tree("Bencode Root", style="bold white")
    for node in nodes:
        _build_rich_tree(node, root)
    console.print(root)


def _json_default(obj: object) -> object:
    if isinstance(obj, bytes | bytearray | memoryview):
        return bytes(obj).hex()
    return str(obj)


def _jsonable(obj: Any) -> Any:
    """字典键必须是 str 才能输出 JSON."""
    if isinstance(obj, dict):
        return {
            (k.hex() if isinstance(k, bytes) else k): _jsonable(v)
            for k, v in obj.items()
        }
    if isinstance(obj, list):
        return [_jsonable(v) for v in obj]
    return obj


def _decode_and_print(
    data: bytes,
    output_format: str,
    output_file: Path | None,
    bytes_mode: str,
) -> None:
    """解码并输出结果."""
    if output_format == "tree":
        nodes = NodeDecoder(DataReader(data)).decode_all()
        if output_file:
            with open(output_file, "w", encoding="utf-8") as f:
                _print_node_tree(nodes, file=f)
            click.echo(f"结果已保存到: {output_file}", err=True)
        else:
            _print_node_tree(nodes)
        return

    result = loads(data, bytes_mode=cast(BytesMode, bytes_mode))

    if output_format == "json":
        output_text = json.dumps(
            _jsonable(result), indent=2, ensure_ascii=False, default=_json_default
        )
        if output_file:
            output_file.write_text(output_text, encoding="utf-8")
            click.echo(f"结果已保存到: {output_file}", err=True)
        else:
            Console().print(Syntax(output_text, "json", theme="monokai", word_wrap=True))
        return

    if output_file:
        import pprint

        output_file.write_text(pprint.pformat(result, width=100), encoding="utf-8")
        click.echo(f"结果已保存到: {output_file}", err=True)
    else:
        Console().print(result)


def _encode_and_print(data: bytes, output_file: Path | None, is_hex: bool) -> None:
    """把 JSON 输入编码为 Bencode 并输出."""
    try:
        obj = json.loads(data)
    except ValueError as e:
        raise click.BadParameter(f"无效的 JSON 输入 - {e}") from e

    encoded = dumps(obj)
    if output_file:
        output_file.write_bytes(encoded)
        click.echo(f"结果已保存到: {output_file}", err=True)
    elif is_hex:
        click.echo(encoded.hex())
    else:
        stdout = click.get_binary_stream("stdout")
        stdout.write(encoded)
        stdout.flush()


@click.command(help="Bencode 编解码命令行工具")
@click.argument("encoded", required=False)
@click.option(
    "-f",
    "--file",
    "file_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="从文件读取输入数据",
)
@click.option(
    "--hex",
    "is_hex",
    is_flag=True,
    help="输入 (解码时) 或输出 (编码时) 为十六进制文本",
)
@click.option(
    "-e",
    "--encode",
    is_flag=True,
    help="把 JSON 输入编码为 Bencode (默认是解码)",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["pretty", "json", "tree"]),
    default="pretty",
    show_default=True,
    help="解码结果的输出格式",
)
@click.option(
    "-o",
    "--output",
    "output_file",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    help="将输出保存到文件 (如不指定则输出到控制台)",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="显示详细的解码过程信息",
)
@click.option(
    "--bytes-mode",
    type=click.Choice(["raw", "string", "auto"]),
    default="auto",
    show_default=True,
    help="字节串处理模式: raw/string/auto",
)
def cli(
    encoded: str | None,
    file_path: Path | None,
    is_hex: bool,
    encode: bool,
    output_format: str,
    output_file: Path | None,
    verbose: bool,
    bytes_mode: str,
) -> None:
    """Bencode 编解码命令行工具.

    Examples:
      # 直接解码
      bencstruct "d3:bar4:spam3:fooi42ee"

      # 从文件读取并以 JSON 格式输出
      bencstruct -f example.torrent --format json

      # 以 Tree 格式输出 (带偏移量)
      bencstruct "l4:spami42ee" --format tree

      # 把 JSON 编码为 Bencode
      echo '{"foo": 42}' | bencstruct --encode
    """
    if encoded and file_path:
        raise click.UsageError("不能同时指定 ENCODED 数据和 --file 参数")

    if verbose:
        logging.basicConfig(stream=sys.stderr, format="[%(levelname)s] %(message)s")
        logger.setLevel(logging.DEBUG)

    data = _read_input(encoded, file_path, is_hex and not encode)
    if verbose:
        click.echo(f"[DEBUG] 数据大小: {len(data)} 字节", err=True)

    try:
        if encode:
            _encode_and_print(data, output_file, is_hex)
        else:
            _decode_and_print(data, output_format, output_file, bytes_mode)
    except click.ClickException:
        raise
    except Exception as e:
        if verbose:
            import traceback

            traceback.print_exc(file=sys.stderr)
        action = "编码" if encode else "解码"
        raise click.ClickException(f"{action}失败: {e}") from e


def main() -> None:
    """入口函数."""
    cli()


if __name__ == "__main__":
    main()
