#!/usr/bin/env python3
# -*- encoding: utf-8 -*-

"""从暴露的.git目录递归发现并下载文件

调度线程独占 Frontier，工作线程只负责下载、落盘和解析，
把发现的新路径通过事件队列交回调度线程去重后再派发。
"""

import logging
import threading
from collections import Counter
from queue import Queue

from .errors import FormatError
from .frontier import Frontier
from .parsing import (
    Blob,
    parse_git_index,
    parse_hash,
    parse_head,
    parse_log,
    parse_object,
    parse_packed_refs,
)
from .paths import hash_to_path, is_lead, is_object_path
from .transport import NotFound, Success

logger = logging.getLogger(__name__)

START_FILES = (
    "info/exclude",
    "logs/HEAD",
    "objects/info/packs",
    "config",
    "COMMIT_EDITMSG",
    "description",
    "FETCH_HEAD",
    "HEAD",
    "index",
    "ORIG_HEAD",
    "packed-refs",
    # 远端名99%都是origin，不去猜其他名字
    "refs/remotes/origin/HEAD",
)

PROPOSE = "propose"
DONE = "done"

DOWNLOADED = "downloaded"
NOT_FOUND = "not_found"
FAILED = "failed"
ERROR = "error"


class CrawlResult:
    def __init__(self):
        self.downloaded = []
        self.counts = Counter()
        self.claimed = 0

    def __repr__(self):
        return f"<CrawlResult claimed={self.claimed} {dict(self.counts)}>"


def _hash_paths(hashes):
    paths = []
    for sha1 in hashes:
        if is_lead(sha1):
            paths.append(hash_to_path(sha1))
        else:
            logger.debug("\t忽略非法哈希 %r", sha1)
    return paths


def derive_leads(path, data):
    """根据文件路径选择解析方式，返回从中发现的新路径

    内容格式不对时抛出 FormatError。
    """
    if path in ("HEAD", "refs/remotes/origin/HEAD"):
        ref_path = parse_head(data)
        logger.debug("\t发现ref路径 %s", ref_path)
        return [ref_path]

    if path.startswith("refs/heads/") or path == "ORIG_HEAD":
        sha1 = parse_hash(data)
        logger.debug("\t发现对象哈希 %s", sha1)
        return _hash_paths([sha1])

    if path.startswith("logs/"):
        hashes = parse_log(data)
        logger.debug("\treflog中有 %d 个哈希", len(hashes))
        return _hash_paths(sorted(hashes))

    if is_object_path(path):
        obj = parse_object(data)
        if isinstance(obj, Blob):
            logger.debug("\tblob对象")
            return []
        logger.debug("\t%s对象，包含 %d 个哈希", type(obj).__name__.lower(), len(obj.hashes))
        return _hash_paths(obj.hashes)

    if path == "index":
        hashes = [entry["sha1"] for entry in parse_git_index(data)]
        logger.debug("\tindex中有 %d 个文件", len(hashes))
        return _hash_paths(hashes)

    if path == "packed-refs":
        hashes = parse_packed_refs(data)
        logger.debug("\tpacked-refs中有 %d 个哈希", len(hashes))
        return _hash_paths(sorted(hashes))

    logger.debug("\t文件 %s 暂时没有用处", path)
    return []


class GitCrawler:
    def __init__(self, base_url, fetcher, sink, max_tasks=8, seeds=START_FILES):
        if max_tasks < 1:
            raise ValueError(f"并发任务数必须大于0: {max_tasks}")
        self.base_url = base_url
        self.fetcher = fetcher
        self.sink = sink
        self.max_tasks = max_tasks
        self.seeds = seeds
        self.frontier = Frontier()

        self._events = Queue()
        self._jobs = Queue()

    def process(self, path):
        """下载一个文件，写到本地并把发现的新路径交给调度线程，返回处理状态"""
        url = self.base_url + path
        outcome = self.fetcher.fetch(url)

        if isinstance(outcome, NotFound):
            logger.debug("文件不存在: %s", path)
            return NOT_FOUND
        if not isinstance(outcome, Success):
            logger.warning("下载 %s 失败: %s", url, outcome.reason)
            return FAILED

        data = outcome.data
        logger.info("已下载 '%s' (%d 字节)", path, len(data))

        # 写入失败不影响继续解析
        try:
            self.sink.write(path, data)
        except OSError as e:
            logger.error("文件 %s 写入磁盘失败: %s", path, e)

        try:
            leads = derive_leads(path, data)
        except FormatError as e:
            logger.warning("解析 %s 失败: %s", path, e)
            leads = []

        for lead in leads:
            self._events.put((PROPOSE, lead))
        return DOWNLOADED

    def _worker(self):
        """线程任务：从队列获取路径，处理完后发送完成事件"""
        while True:
            path = self._jobs.get()
            if path is None:
                return
            status = ERROR
            try:
                status = self.process(path)
            except Exception:
                logger.exception("处理 %s 时出现意外错误", path)
            finally:
                self._events.put((DONE, path, status))

    def run(self):
        result = CrawlResult()

        for path in self.seeds:
            self._events.put((PROPOSE, path))

        threads = [
            threading.Thread(target=self._worker, name=f"gitdump-worker-{i}", daemon=True)
            for i in range(self.max_tasks)
        ]
        for thread in threads:
            thread.start()

        # 工作线程总是先发送新路径再发送完成事件，
        # 所以没有进行中的任务且事件队列为空时，下载就结束了
        outstanding = 0
        try:
            while outstanding or not self._events.empty():
                event = self._events.get()
                if event[0] == DONE:
                    _, path, status = event
                    outstanding -= 1
                    result.counts[status] += 1
                    if status == DOWNLOADED:
                        result.downloaded.append(path)
                    continue

                path = event[1]
                if self.frontier.try_claim(path):
                    outstanding += 1
                    self._jobs.put(path)
        finally:
            for _ in threads:
                self._jobs.put(None)
            for thread in threads:
                thread.join()

        result.claimed = len(self.frontier)
        return result
