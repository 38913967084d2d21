from .audio_processor import AudioArtifacts, AudioProcessor, FFmpegError, get_preview_encoder
from .generation import GeneratedAudio, GenerationClient
from .job_store import JobStore
from .storage import StorageService

__all__ = [
    "AudioArtifacts",
    "AudioProcessor",
    "FFmpegError",
    "get_preview_encoder",
    "GeneratedAudio",
    "GenerationClient",
    "JobStore",
    "StorageService",
]
