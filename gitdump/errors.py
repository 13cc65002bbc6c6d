#!/usr/bin/env python3
# -*- encoding: utf-8 -*-

"""文件内容解析失败时抛出的异常"""


class FormatError(ValueError):
    """下载到的文件内容不符合预期格式"""


class InvalidEncoding(FormatError):
    pass


class UnexpectedShape(FormatError):
    pass


class PathTraversal(FormatError):
    """ref路径中出现 `..` 段，拒绝落盘"""


class DecompressionFailure(FormatError):
    pass


class MalformedObject(FormatError):
    pass


class UnrecognizedType(FormatError):
    pass
