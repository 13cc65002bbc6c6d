#!/usr/bin/env python3
# -*- encoding: utf-8 -*-

import re

# 全零哈希表示"没有对象"，永远不下载
EMPTY_HASH = "0" * 40

HASH_RE = re.compile(r"[0-9a-f]{40}")
OBJECT_PATH_RE = re.compile(r"objects/[0-9a-f]{2}/[0-9a-f]{38}")


def is_hash(value):
    return bool(HASH_RE.fullmatch(value))


def is_lead(value):
    """可以继续追踪的对象哈希（排除全零哈希）"""
    return is_hash(value) and value != EMPTY_HASH


def hash_to_path(sha1):
    """松散对象的存储路径：objects/前两位/剩余38位"""
    return f"objects/{sha1[:2]}/{sha1[2:]}"


def is_object_path(path):
    # objects/info/packs 之类的文件不算对象
    return bool(OBJECT_PATH_RE.fullmatch(path))


def is_safe_path(path):
    """过滤危险路径（防止路径遍历）"""
    if not path or path.startswith(("/", "\\")):
        return False
    return ".." not in re.split(r"[/\\]", path)
