"""从暴露的.git目录还原git仓库"""

from .crawler import START_FILES, GitCrawler
from .sink import MirrorWriter
from .transport import Fetcher

__version__ = "0.1.0"

__all__ = ["START_FILES", "GitCrawler", "MirrorWriter", "Fetcher", "__version__"]
