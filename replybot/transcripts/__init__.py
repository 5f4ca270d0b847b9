from replybot.transcripts.sources import (
    AITranscriptionSource,
    ArchiveMirrorSource,
    CaptionsSource,
    FetchOutcome,
    FetchResult,
)
from replybot.transcripts.resolver import TranscriptResolver

__all__ = [
    "AITranscriptionSource",
    "ArchiveMirrorSource",
    "CaptionsSource",
    "FetchOutcome",
    "FetchResult",
    "TranscriptResolver",
]
