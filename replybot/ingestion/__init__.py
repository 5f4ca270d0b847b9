from replybot.ingestion.chunker import TextChunk, chunk_text, count_tokens
from replybot.ingestion.normalize import TranscriptNormalizer
from replybot.ingestion.pipeline import IngestionPipeline, IngestResult
from replybot.ingestion.summary import summarize_chunks

__all__ = [
    "TextChunk",
    "chunk_text",
    "count_tokens",
    "TranscriptNormalizer",
    "IngestionPipeline",
    "IngestResult",
    "summarize_chunks",
]
