#!/usr/bin/env python3
# -*- encoding: utf-8 -*-

import os
from dataclasses import dataclass

# 较新的浏览器UA，提高请求成功率
USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36'

DEFAULT_OUTPUT_DIR = "git-dumped"
DEFAULT_TASKS = 8


def normalize_base_url(url):
    """去掉首尾空白并保证以 / 结尾，方便直接拼接相对路径"""
    url = url.strip()
    if not url.endswith("/"):
        url += "/"
    return url


@dataclass(frozen=True)
class DumpConfig:
    base_url: str
    output_dir: str = DEFAULT_OUTPUT_DIR
    tasks: int = DEFAULT_TASKS
    user_agent: str = USER_AGENT
    timeout: float = 10
    retries: int = 3
    checkout: bool = False
    verbose: bool = False

    def __post_init__(self):
        if self.tasks < 1:
            raise ValueError(f"并发任务数必须大于0: {self.tasks}")
        object.__setattr__(self, "base_url", normalize_base_url(self.base_url))

    @property
    def git_dir(self):
        return os.path.join(self.output_dir, ".git")

    @classmethod
    def from_args(cls, args):
        return cls(
            base_url=args.url,
            output_dir=args.path,
            tasks=args.tasks,
            user_agent=args.user_agent,
            timeout=args.timeout,
            retries=args.retries,
            checkout=args.checkout,
            verbose=args.verbose,
        )
