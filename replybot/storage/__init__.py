from replybot.storage.models import Comment, Draft, VideoIndex, TranscriptChunk, IndexStatus, DraftStatus
from replybot.storage.connection import get_connection, close_connection, transaction
from replybot.storage.schema import initialize_database
from replybot.storage.comment_store import CommentStore
from replybot.storage.draft_store import DraftStore
from replybot.storage.video_index_store import VideoIndexStore
from replybot.storage.chunk_store import ChunkStore

__all__ = [
    "Comment",
    "Draft",
    "VideoIndex",
    "TranscriptChunk",
    "IndexStatus",
    "DraftStatus",
    "get_connection",
    "close_connection",
    "transaction",
    "initialize_database",
    "CommentStore",
    "DraftStore",
    "VideoIndexStore",
    "ChunkStore",
]
