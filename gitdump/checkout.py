#!/usr/bin/env python3
# -*- encoding: utf-8 -*-

"""用下载到的index和松散对象还原工作区文件"""

import os
import re
import zlib
import queue
import logging
import threading
from collections import Counter

from .parsing import parse_git_index
from .paths import hash_to_path, is_safe_path

logger = logging.getLogger(__name__)

BLOB_HEADER_RE = re.compile(rb"^blob \d+\x00")


class WorktreeRestorer:
    def __init__(self, git_dir, dest_dir, threads=10):
        self.git_dir = git_dir
        self.dest_dir = os.path.abspath(dest_dir)
        self.thread_count = threads

        self.queue = queue.Queue()
        self.lock = threading.Lock()
        self.counts = Counter()

    def _count(self, key):
        with self.lock:
            self.counts[key] += 1

    def enqueue_files(self):
        """从index文件提取文件信息，加入还原队列"""
        index_path = os.path.join(self.git_dir, "index")
        with open(index_path, "rb") as f:
            data = f.read()

        for entry in parse_git_index(data):
            sha1, file_name = entry["sha1"], entry["name"]
            if is_safe_path(file_name) and re.split(r"[/\\]", file_name)[0].lower() != ".git":
                self.queue.put((sha1, file_name))
            else:
                logger.warning("跳过危险路径: %s", file_name)

    def restore_file(self, sha1, file_name):
        object_path = os.path.join(self.git_dir, hash_to_path(sha1))
        if not os.path.isfile(object_path):
            logger.debug("缺少对象 %s: %s", sha1, file_name)
            self._count("missing")
            return

        with open(object_path, "rb") as f:
            obj_data = zlib.decompress(f.read())

        # 只去掉开头的blob头（格式：blob 大小\x00），避免误删文件内容
        obj_data, found = BLOB_HEADER_RE.subn(b"", obj_data, count=1)
        if not found:
            logger.warning("对象 %s 不是blob: %s", sha1, file_name)
            self._count("failed")
            return

        target_path = os.path.join(self.dest_dir, file_name)
        os.makedirs(os.path.dirname(target_path), exist_ok=True)
        with open(target_path, "wb") as f:
            f.write(obj_data)
        logger.info("已还原 %s", file_name)
        self._count("restored")

    def fetch_file(self):
        """线程任务：从队列获取文件信息并还原"""
        while True:
            try:
                sha1, file_name = self.queue.get_nowait()
            except queue.Empty:
                break  # 队列空，线程退出
            try:
                self.restore_file(sha1, file_name)
            except (OSError, zlib.error) as e:
                logger.error("还原 %s 失败: %s", file_name, e)
                self._count("failed")
            finally:
                self.queue.task_done()

    def run_threads(self):
        """启动多线程处理队列任务"""
        threads = [
            threading.Thread(target=self.fetch_file, daemon=True)
            for _ in range(self.thread_count)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()


def restore_worktree(git_dir, dest_dir, threads=10):
    """还原index中记录的所有文件，返回 restored / missing / failed 计数

    index不存在或格式错误时抛出 OSError / FormatError。
    """
    restorer = WorktreeRestorer(git_dir, dest_dir, threads=threads)
    restorer.enqueue_files()
    file_count = restorer.queue.qsize()
    if file_count == 0:
        logger.warning("未从index文件中提取到有效文件")
        return restorer.counts

    logger.info("发现 %d 个文件待还原", file_count)
    restorer.run_threads()
    return restorer.counts
