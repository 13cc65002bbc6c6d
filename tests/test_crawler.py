import threading
import time

import pytest

from gitdump.crawler import START_FILES, GitCrawler, derive_leads
from gitdump.errors import PathTraversal, UnexpectedShape
from gitdump.paths import hash_to_path
from gitdump.transport import NotFound, TransportFailure
from git_fixtures import (
    BASE_URL,
    FakeFetcher,
    FakeSink,
    build_index,
    commit_body,
    make_object,
    tree_body,
)

COMMIT = "faf660b3b793f359495ad23ea2c449da6b3b64a0"
TREE = "93748a31e8df89b80ab5ebe4ad19ea62899a28fa"
PARENT = "1712bc7d3a0e6cf9920541e616310bd30f431728"
BLOB = "f5463e0d810357c84bdb956dcfe70b8015d6fb24"


def _crawl(files, sink=None, **kwargs):
    fetcher = FakeFetcher(files)
    sink = sink or FakeSink()
    result = GitCrawler(BASE_URL, fetcher, sink, **kwargs).run()
    return fetcher, sink, result


def test_crawl_follows_head_to_branch_to_object():
    files = {
        "HEAD": b"ref: refs/heads/main\n",
        "refs/heads/main": f"{COMMIT}\n".encode(),
    }
    fetcher, sink, result = _crawl(files)

    assert set(sink.written) == {"HEAD", "refs/heads/main"}
    fetched = fetcher.fetched_paths()
    assert sorted(fetched) == sorted(list(START_FILES) + ["refs/heads/main", hash_to_path(COMMIT)])
    assert len(fetched) == len(set(fetched))
    assert result.counts["downloaded"] == 2
    assert result.counts["not_found"] == len(START_FILES)
    assert result.claimed == len(START_FILES) + 2
    assert sorted(result.downloaded) == ["HEAD", "refs/heads/main"]


def test_crawl_fetches_shared_hash_once():
    files = {
        "HEAD": b"ref: refs/heads/main\n",
        "refs/heads/main": COMMIT.encode(),
        "ORIG_HEAD": PARENT.encode(),
        hash_to_path(COMMIT): make_object("commit", commit_body(TREE, [PARENT])),
        hash_to_path(TREE): make_object(
            "tree",
            tree_body([("160000", "vendor", PARENT), ("100644", "README.md", BLOB)]),
        ),
        hash_to_path(BLOB): make_object("blob", b"hello\n"),
    }
    fetcher, sink, result = _crawl(files, max_tasks=4)

    fetched = fetcher.fetched_paths()
    assert fetched.count(hash_to_path(PARENT)) == 1
    assert len(fetched) == len(set(fetched))
    assert set(sink.written) == {
        "HEAD",
        "refs/heads/main",
        "ORIG_HEAD",
        hash_to_path(COMMIT),
        hash_to_path(TREE),
        hash_to_path(BLOB),
    }
    assert result.counts["downloaded"] == 6


def test_crawl_uses_reflog_index_and_packed_refs():
    files = {
        "logs/HEAD": f"{'0' * 40} {COMMIT} Dev <dev@example.com> 1 +0000\tcommit (initial): x\n".encode(),
        "index": build_index([(BLOB, "README.md")]),
        "packed-refs": f"{TREE} refs/heads/old\n".encode(),
    }
    fetcher, _, _ = _crawl(files)

    fetched = set(fetcher.fetched_paths())
    assert {hash_to_path(COMMIT), hash_to_path(BLOB), hash_to_path(TREE)} <= fetched
    assert hash_to_path("0" * 40) not in fetched


def test_crawl_continues_when_sink_fails():
    class BrokenSink:
        def write(self, path, data):
            raise OSError("disk full")

    files = {
        "HEAD": b"ref: refs/heads/main\n",
        "refs/heads/main": COMMIT.encode(),
    }
    fetcher, _, result = _crawl(files, sink=BrokenSink())

    assert hash_to_path(COMMIT) in fetcher.fetched_paths()
    assert result.counts["downloaded"] == 2


def test_crawl_stops_branch_on_bad_content():
    files = {
        "HEAD": b"ref: refs/heads/../../../../etc/cron.d/evil\n",
        "ORIG_HEAD": b"not a hash\n",
        hash_to_path(COMMIT): b"garbage",
    }
    fetcher, sink, result = _crawl(files, seeds=("HEAD", "ORIG_HEAD", hash_to_path(COMMIT)))

    assert sorted(fetcher.fetched_paths()) == sorted(["HEAD", "ORIG_HEAD", hash_to_path(COMMIT)])
    assert len(sink.written) == 3
    assert result.counts["downloaded"] == 3


def test_crawl_survives_transport_failures_and_worker_errors():
    class FlakyFetcher(FakeFetcher):
        def fetch(self, url):
            if url.endswith("config"):
                return TransportFailure(url, "connection reset")
            if url.endswith("description"):
                raise RuntimeError("boom")
            return super().fetch(url)

    fetcher = FlakyFetcher({"HEAD": b"ref: refs/heads/main\n"})
    result = GitCrawler(BASE_URL, fetcher, FakeSink()).run()

    assert result.counts["failed"] == 1
    assert result.counts["error"] == 1
    assert result.counts["downloaded"] == 1
    assert "refs/heads/main" in fetcher.fetched_paths()


def test_crawl_with_no_seeds_finishes():
    fetcher, _, result = _crawl({}, seeds=())
    assert fetcher.urls == []
    assert result.claimed == 0


def test_invalid_task_count():
    with pytest.raises(ValueError):
        GitCrawler(BASE_URL, FakeFetcher({}), FakeSink(), max_tasks=0)


class BlockingFetcher:
    """在 release 之前一直阻塞，记录同时进行中的请求数"""

    def __init__(self):
        self.release = threading.Event()
        self.lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.calls = 0

    def fetch(self, url):
        with self.lock:
            self.active += 1
            self.calls += 1
            self.max_active = max(self.max_active, self.active)
        self.release.wait(timeout=10)
        with self.lock:
            self.active -= 1
        return NotFound(url)


@pytest.mark.parametrize("max_tasks", [1, 3, 8])
def test_concurrent_fetches_never_exceed_limit(max_tasks):
    fetcher = BlockingFetcher()
    seeds = tuple(f"file-{i}" for i in range(20))
    crawler = GitCrawler(BASE_URL, fetcher, FakeSink(), max_tasks=max_tasks, seeds=seeds)
    runner = threading.Thread(target=crawler.run)
    runner.start()

    deadline = time.monotonic() + 5
    while fetcher.active < max_tasks and time.monotonic() < deadline:
        time.sleep(0.01)
    time.sleep(0.05)
    assert fetcher.active == max_tasks
    assert fetcher.max_active == max_tasks

    fetcher.release.set()
    runner.join(timeout=10)
    assert not runner.is_alive()
    assert fetcher.max_active <= max_tasks
    assert fetcher.calls == len(seeds)


def test_derive_leads_dispatch():
    assert derive_leads("HEAD", b"ref: refs/heads/dev\n") == ["refs/heads/dev"]
    assert derive_leads("refs/heads/dev", COMMIT.encode()) == [hash_to_path(COMMIT)]
    assert derive_leads("ORIG_HEAD", COMMIT.encode()) == [hash_to_path(COMMIT)]
    assert derive_leads("config", b"[core]\n\tbare = false\n") == []
    assert derive_leads("objects/info/packs", b"P pack-abc.pack\n") == []
    assert derive_leads(hash_to_path(BLOB), make_object("blob", b"x")) == []


def test_derive_leads_skips_malformed_commit_headers():
    body = f"tree {TREE}\nparent not-a-hash\nparent {'0' * 40}\n\nmsg\n".encode()
    assert derive_leads(hash_to_path(COMMIT), make_object("commit", body)) == [hash_to_path(TREE)]


def test_derive_leads_raises_format_errors():
    with pytest.raises(PathTraversal):
        derive_leads("HEAD", b"ref: refs/heads/../x\n")
    with pytest.raises(UnexpectedShape):
        derive_leads("refs/remotes/origin/HEAD", b"ref: refs/remotes/origin/main\n")
