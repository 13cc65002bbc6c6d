#!/usr/bin/env python3
# -*- encoding: utf-8 -*-

"""解析.git目录中各类文件的内容，提取新的线索（ref路径、对象哈希）

这里的函数都是纯函数，不做任何I/O，解析失败时抛出 FormatError 的子类。
"""

import re
import zlib
import struct
import binascii
from collections import namedtuple

from .errors import (
    DecompressionFailure,
    InvalidEncoding,
    MalformedObject,
    PathTraversal,
    UnexpectedShape,
    UnrecognizedType,
)
from .paths import HASH_RE, is_lead

REFS_PATH_RE = re.compile(r"refs/heads/\S+")

# 只需解压出前几个字节就能判断对象类型（"commit" 最长，6字节）
PEEK_SIZE = 6

Blob = namedtuple("Blob", [])
Tree = namedtuple("Tree", ["hashes"])
Commit = namedtuple("Commit", ["hashes"])


def _decode(data):
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidEncoding(f"内容不是合法的UTF-8: {e}") from e


def _lines(text):
    # 只按 \n 分行，\u2028 之类的字符留在行内
    return [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]


def parse_head(data):
    """解析HEAD文件，返回其指向的ref路径（如 refs/heads/main）"""
    content = _decode(data)
    if not content.startswith("ref: "):
        raise UnexpectedShape('HEAD文件必须以 "ref: " 开头')

    content = content[5:].rstrip()
    if not REFS_PATH_RE.fullmatch(content):
        raise UnexpectedShape(f"HEAD文件中没有合法的refs路径: {content!r}")

    # ref路径马上会变成本地文件路径，正常的git仓库不会出现 `..` 段
    if ".." in re.split(r"[/\\]", content):
        raise PathTraversal(f"HEAD文件中检测到路径遍历: {content!r}")

    return content


def parse_hash(data):
    """解析只包含一个对象哈希的文件（refs/heads/*、ORIG_HEAD）"""
    content = _decode(data).rstrip()
    if not HASH_RE.fullmatch(content):
        raise UnexpectedShape(f"不是合法的对象哈希: {content[:64]!r}")
    return content


def parse_log(data):
    """从reflog中提取新旧两个哈希，格式不对的行直接跳过"""
    hashes = set()
    for line in _lines(data.decode("utf-8", "replace")):
        fields = line.split(" ", 2)
        if len(fields) < 2:
            continue
        for value in fields[:2]:
            if is_lead(value):
                hashes.add(value)
    return hashes


def parse_packed_refs(data):
    """从packed-refs中提取对象哈希（包括 ^ 开头的peeled行）"""
    hashes = set()
    for line in _lines(data.decode("utf-8", "replace")):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("^"):
            value = line[1:]
        else:
            value = line.split(" ", 1)[0]
        if is_lead(value):
            hashes.add(value)
    return hashes


def peek_object_type(data):
    """只解压前 PEEK_SIZE 个字节，避免为大文件blob做完整解压"""
    try:
        peek = zlib.decompressobj().decompress(data, PEEK_SIZE)
    except zlib.error as e:
        raise DecompressionFailure(f"预读对象头时解压失败: {e}") from e

    # 合法的对象头至少有7字节（如 "tree 0\0"），解压不出来说明数据被截断
    if len(peek) < PEEK_SIZE:
        raise DecompressionFailure(f"对象数据不完整，只解压出 {len(peek)} 字节")
    return peek


def _inflate_body(data):
    try:
        raw = zlib.decompress(data)
    except zlib.error as e:
        raise DecompressionFailure(f"解压对象失败: {e}") from e

    # 对象头格式：<type> <size>\0
    nul = raw.find(b"\x00")
    if nul < 0:
        raise MalformedObject("对象格式错误，找不到头部结尾的\\0")
    return raw[nul + 1:]


def _parse_tree(body):
    # 每个条目：<mode> <name>\0<20字节原始SHA1>
    hashes = []
    offset = 0
    while offset < len(body):
        nul = body.find(b"\x00", offset)
        if nul < 0 or nul + 21 > len(body):
            raise MalformedObject(f"tree条目在偏移 {offset} 处被截断")
        hashes.append(binascii.hexlify(body[nul + 1:nul + 21]).decode("ascii"))
        offset = nul + 21
    return hashes


def _parse_commit(body):
    # 空行之后是提交信息，不再扫描
    hashes = []
    for line in _lines(body.decode("utf-8", "replace")):
        if not line.strip():
            break
        key, sep, value = line.partition(" ")
        if sep and key in ("tree", "parent"):
            hashes.append(value)
    return hashes


def parse_object(data):
    """解析zlib压缩的松散对象，返回 Blob / Tree / Commit"""
    peek = peek_object_type(data)

    if peek.startswith(b"blob"):
        return Blob()
    if peek.startswith(b"tree"):
        return Tree(_parse_tree(_inflate_body(data)))
    if peek == b"commit":
        return Commit(_parse_commit(_inflate_body(data)))

    raise UnrecognizedType(f"未知的对象类型: {peek.decode('ascii', 'replace')!r}")


def parse_git_index(data):
    """解析.git/index文件，逐条返回文件SHA1哈希和路径"""
    view = memoryview(data)
    offset = 0

    # 读取指定格式的二进制数据并更新偏移量
    def read(fmt):
        nonlocal offset
        size = struct.calcsize(fmt)
        if offset + size > len(view):
            raise MalformedObject(f"index文件在偏移 {offset} 处被截断")
        result = struct.unpack(fmt, view[offset:offset + size])[0]
        offset += size
        return result

    # 验证index文件签名（必须为DIRC）
    if view[:4].tobytes() != b"DIRC":
        raise UnexpectedShape("非法Git index文件")
    offset = 4

    # 仅支持2、3版本的index文件
    version = read("!I")
    if version not in {2, 3}:
        raise UnexpectedShape(f"不支持的index版本: {version}")

    entries_count = read("!I")
    for _ in range(entries_count):
        entry_start = offset
        # 跳过ctime、mtime、dev、ino、mode、uid、gid、size共40字节
        offset += 40
        if offset + 22 > len(view):
            raise MalformedObject(f"index条目在偏移 {entry_start} 处被截断")
        sha1 = binascii.hexlify(view[offset:offset + 20].tobytes()).decode("ascii")
        offset += 20
        flags = read("!H")

        # 第3版的扩展标志位多占2字节
        if version == 3 and flags & 0x4000:
            read("!H")

        name_length = flags & 0xFFF
        if name_length == 0xFFF:
            end = data.find(b"\x00", offset)
            if end < 0:
                raise MalformedObject("index条目的文件名没有结尾")
        else:
            end = offset + name_length
            if end > len(view):
                raise MalformedObject(f"index条目在偏移 {entry_start} 处被截断")
        name = view[offset:end].tobytes().decode("utf-8", "replace")

        # 条目按8字节对齐，至少有1个\0填充
        offset = entry_start + ((end - entry_start + 8) & ~7)
        yield {"sha1": sha1, "flags": flags, "name": name}
