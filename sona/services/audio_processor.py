import subprocess
from dataclasses import dataclass
from typing import Protocol

import structlog

from sona.core.errors import PermanentJobFailure

logger = structlog.get_logger()


class FFmpegError(PermanentJobFailure):
    """Exception raised when FFmpeg encoding fails."""
    pass


class InvalidAudioError(PermanentJobFailure):
    pass


def detect_format(data: bytes) -> str | None:
    """Recognize the container from its leading bytes."""
    if data[:4] == b"RIFF":
        return "wav"
    if data[:3] == b"ID3":
        return "mp3"
    if len(data) >= 2 and data[0] == 0xFF and (data[1] & 0xE0) == 0xE0:
        return "mp3"
    return None


def is_valid_audio(data: bytes) -> bool:
    """Empty buffers are rejected. Unknown signatures pass with a warning."""
    if not data:
        return False
    detected = detect_format(data)
    if detected is None:
        logger.warning("unknown_audio_signature", size=len(data), head=data[:4].hex())
    return True


class PreviewEncoder(Protocol):
    content_type: str
    extension: str

    def encode(self, wav: bytes) -> bytes: ...


class CopyPreviewEncoder:
    """Publishes the master bytes unchanged as the preview."""

    content_type = "audio/mpeg"
    extension = "mp3"

    def encode(self, wav: bytes) -> bytes:
        logger.warning("preview_encoding_passthrough", size=len(wav))
        return bytes(wav)


class FFmpegPreviewEncoder:
    """MP3 preview encoder backed by the ffmpeg binary."""

    content_type = "audio/mpeg"
    extension = "mp3"

    def __init__(self, bitrate: str = "192k", timeout: int = 120) -> None:
        self.bitrate = bitrate
        self.timeout = timeout

    def encode(self, wav: bytes) -> bytes:
        """
        Encode via pipes.
        Command: ffmpeg -i pipe:0 -codec:a libmp3lame -b:a {bitrate} -f mp3 pipe:1
        """
        cmd = [
            "ffmpeg", "-hide_banner", "-loglevel", "error",
            "-i", "pipe:0",
            "-codec:a", "libmp3lame", "-b:a", self.bitrate,
            "-f", "mp3", "pipe:1",
        ]

        logger.info("ffmpeg_started", size=len(wav), bitrate=self.bitrate)

        try:
            result = subprocess.run(cmd, input=wav, capture_output=True, timeout=self.timeout, check=False)
        except subprocess.TimeoutExpired as e:
            raise FFmpegError(f"FFmpeg timeout: {e}") from e
        except FileNotFoundError as e:
            raise FFmpegError("FFmpeg binary not found") from e

        if result.returncode != 0:
            stderr = result.stderr.decode(errors="replace")
            logger.error("ffmpeg_failed", returncode=result.returncode, stderr=stderr[:500])
            raise FFmpegError(f"FFmpeg failed: {stderr}")

        if not result.stdout:
            raise FFmpegError("FFmpeg produced no output")

        logger.info("ffmpeg_completed", size=len(result.stdout))
        return result.stdout


def get_preview_encoder(name: str) -> PreviewEncoder:
    if name == "ffmpeg":
        return FFmpegPreviewEncoder()
    return CopyPreviewEncoder()


@dataclass(frozen=True)
class AudioArtifacts:
    master: bytes
    preview: bytes


class AudioProcessor:
    """Turns provider output into a master artifact and a preview artifact."""

    def __init__(self, encoder: PreviewEncoder | None = None) -> None:
        self.encoder = encoder or CopyPreviewEncoder()

    def process(self, audio: bytes, audio_format: str) -> AudioArtifacts:
        if not is_valid_audio(audio):
            raise InvalidAudioError("Generated audio is empty")

        if audio_format != "wav":
            logger.warning("master_not_wav", format=audio_format)

        preview = self.encoder.encode(audio)
        if not is_valid_audio(preview):
            raise InvalidAudioError("Preview encoding produced no audio")

        return AudioArtifacts(master=audio, preview=preview)
