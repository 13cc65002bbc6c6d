#!/usr/bin/env python3
# -*- encoding: utf-8 -*-


class Frontier:
    """已调度下载的路径集合，保证每个路径只下载一次

    只允许调度线程访问，因此不加锁。
    """

    def __init__(self):
        self._claimed = set()

    def try_claim(self, path):
        """路径第一次出现时登记并返回True，否则返回False"""
        if path in self._claimed:
            return False
        self._claimed.add(path)
        return True

    def __contains__(self, path):
        return path in self._claimed

    def __len__(self):
        return len(self._claimed)
