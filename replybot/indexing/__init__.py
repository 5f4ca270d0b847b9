from replybot.indexing.orchestrator import VideoIndexOrchestrator
from replybot.indexing.vector_index import VectorIndex

__all__ = ["VideoIndexOrchestrator", "VectorIndex"]
