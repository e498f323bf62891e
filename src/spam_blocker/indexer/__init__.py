"""Network indexer: a reactive crawler mirroring public forum content."""

from .client import RemoteClient, RemoteComment, RemotePages, RemoteSubplebbit
from .comment_fetcher import CommentFetcher, FetchResult, store_comment_from_page, store_raw_comment
from .manager import Indexer
from .modqueue_tracker import ModQueueTracker
from .page_queue import PageQueue
from .previous_cid_crawler import CrawlResult, PreviousCidCrawler
from .subplebbit_indexer import SubplebbitIndexer, SubplebbitSubscription
from .types import IndexerConfig, IndexerState, QueryRunner

__all__ = [
    "Indexer", "IndexerConfig", "IndexerState", "QueryRunner",
    "RemoteClient", "RemoteComment", "RemotePages", "RemoteSubplebbit",
    "CommentFetcher", "FetchResult", "store_comment_from_page", "store_raw_comment",
    "ModQueueTracker",
    "PageQueue",
    "CrawlResult", "PreviousCidCrawler",
    "SubplebbitIndexer", "SubplebbitSubscription",
]
