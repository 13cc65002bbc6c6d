#!/usr/bin/env python3
# -*- encoding: utf-8 -*-

import os

from .paths import is_safe_path


class MirrorWriter:
    """把下载到的文件按原有相对路径写到本地 .git 目录"""

    def __init__(self, root):
        self.root = os.path.abspath(root)

    def target_path(self, path):
        if not is_safe_path(path):
            raise OSError(f"拒绝写入危险路径: {path!r}")
        target = os.path.realpath(os.path.join(self.root, path))
        if os.path.commonpath((target, os.path.realpath(self.root))) != os.path.realpath(self.root):
            raise OSError(f"路径超出输出目录: {path!r}")
        return target

    def write(self, path, data):
        # 写入文件（自动创建父目录）
        target = self.target_path(path)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, "wb") as f:
            f.write(data)
        return target
