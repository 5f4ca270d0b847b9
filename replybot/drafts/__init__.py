from replybot.drafts.generator import DraftGenerator
from replybot.drafts.prompts import build_messages, parse_reply
from replybot.drafts.retriever import ChunkRetriever, RetrievedChunk

__all__ = [
    "DraftGenerator",
    "build_messages",
    "parse_reply",
    "ChunkRetriever",
    "RetrievedChunk",
]
