# -*- encoding: utf-8 -*-

import os
import argparse

from .checkout import restore_worktree
from .config import DEFAULT_OUTPUT_DIR, DEFAULT_TASKS, USER_AGENT, DumpConfig
from .crawler import GitCrawler
from .errors import FormatError
from .log import setup_logging
from .sink import MirrorWriter
from .transport import Fetcher


def build_parser():
    parser = argparse.ArgumentParser(
        prog="git-dump",
        description="从暴露的.git目录下载并还原git仓库",
        epilog="示例: git-dump http://www.example.com 或 git-dump http://www.example.com/.git",
    )
    parser.add_argument("url", help="暴露的.git目录URL")
    parser.add_argument("path", nargs="?", default=DEFAULT_OUTPUT_DIR, help="下载到的本地目录")
    parser.add_argument("-t", "--tasks", type=int, default=DEFAULT_TASKS, help="同时进行的下载任务上限")
    parser.add_argument("-u", "--user-agent", default=USER_AGENT, help="自定义User-Agent")
    parser.add_argument("--timeout", type=float, default=10, help="单个请求的超时时间（秒）")
    parser.add_argument("--retries", type=int, default=3, help="单个请求的重试次数")
    parser.add_argument("--checkout", action="store_true", help="下载完成后根据index还原工作区文件")
    parser.add_argument("-v", "--verbose", action="store_true", help="输出调试信息")
    return parser


def parse_config(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.tasks < 1:
        parser.error("--tasks 必须大于0")

    # 自动补充.git路径（若用户未输入，以.git结尾的裸仓库地址保持不变）
    url = args.url.strip().rstrip("/")
    if not url.endswith(".git"):
        url += "/.git"
    args.url = url
    return DumpConfig.from_args(args)


def main(argv=None):
    config = parse_config(argv)
    logger = setup_logging(config.verbose)

    try:
        os.makedirs(config.git_dir, exist_ok=True)
    except OSError as e:
        logger.error("无法创建输出目录 %s: %s", config.git_dir, e)
        return 1

    logger.info("目标URL: %s", config.base_url)
    logger.info("输出目录: %s", os.path.abspath(config.output_dir))

    fetcher = Fetcher(user_agent=config.user_agent, timeout=config.timeout, retries=config.retries)
    crawler = GitCrawler(config.base_url, fetcher, MirrorWriter(config.git_dir), max_tasks=config.tasks)
    try:
        result = crawler.run()
    finally:
        fetcher.close()

    logger.info(
        "下载完成: 共尝试 %d 个文件，成功 %d 个，不存在 %d 个，失败 %d 个",
        result.claimed,
        result.counts["downloaded"],
        result.counts["not_found"],
        result.counts["failed"] + result.counts["error"],
    )

    if config.checkout:
        try:
            counts = restore_worktree(config.git_dir, config.output_dir)
        except (OSError, FormatError) as e:
            logger.error("无法根据index还原工作区: %s", e)
        else:
            logger.info(
                "还原完成: 成功 %d 个，缺少对象 %d 个，失败 %d 个",
                counts["restored"],
                counts["missing"],
                counts["failed"],
            )
    return 0
