"""
Unit tests for sona/services/audio_processor.py

Tests audio signature checks, preview encoders and artifact assembly.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from sona.services.audio_processor import (
    AudioProcessor,
    CopyPreviewEncoder,
    FFmpegError,
    FFmpegPreviewEncoder,
    InvalidAudioError,
    detect_format,
    get_preview_encoder,
    is_valid_audio,
)


class TestSignatures:
    """Tests for format detection and validation."""

    @pytest.mark.unit
    def test_detect_wav(self, sample_wav_bytes):
        assert detect_format(sample_wav_bytes) == "wav"

    @pytest.mark.unit
    def test_detect_mp3_with_id3_tag(self):
        assert detect_format(b"ID3\x04\x00\x00") == "mp3"

    @pytest.mark.unit
    def test_detect_mp3_frame_sync(self):
        assert detect_format(b"\xff\xfb\x90\x64") == "mp3"

    @pytest.mark.unit
    def test_detect_unknown(self):
        assert detect_format(b"OggS\x00") is None

    @pytest.mark.unit
    def test_empty_audio_is_invalid(self):
        assert is_valid_audio(b"") is False

    @pytest.mark.unit
    def test_unknown_signature_is_accepted(self):
        assert is_valid_audio(b"\x00\x01\x02\x03") is True


class TestFFmpegPreviewEncoder:
    """Tests for the ffmpeg-backed MP3 encoder."""

    @pytest.fixture
    def encoder(self):
        return FFmpegPreviewEncoder(bitrate="128k", timeout=30)

    @pytest.mark.unit
    def test_encode_pipes_audio_through_ffmpeg(self, encoder, sample_wav_bytes):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout=b"ID3encoded", stderr=b"")

            result = encoder.encode(sample_wav_bytes)

            assert result == b"ID3encoded"
            mock_run.assert_called_once()
            call_args = mock_run.call_args[0][0]
            assert call_args[0] == "ffmpeg"
            assert "pipe:0" in call_args
            assert "pipe:1" in call_args
            assert "libmp3lame" in call_args
            assert "128k" in call_args
            assert mock_run.call_args.kwargs["input"] == sample_wav_bytes
            assert mock_run.call_args.kwargs["timeout"] == 30

    @pytest.mark.unit
    def test_nonzero_exit_raises(self, encoder, sample_wav_bytes):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=1, stdout=b"", stderr=b"Invalid data found")

            with pytest.raises(FFmpegError, match="Invalid data found"):
                encoder.encode(sample_wav_bytes)

    @pytest.mark.unit
    def test_timeout_raises(self, encoder, sample_wav_bytes):
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("ffmpeg", 30)):
            with pytest.raises(FFmpegError, match="timeout"):
                encoder.encode(sample_wav_bytes)

    @pytest.mark.unit
    def test_missing_binary_raises(self, encoder, sample_wav_bytes):
        with patch("subprocess.run", side_effect=FileNotFoundError("ffmpeg")):
            with pytest.raises(FFmpegError, match="not found"):
                encoder.encode(sample_wav_bytes)

    @pytest.mark.unit
    def test_empty_output_raises(self, encoder, sample_wav_bytes):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout=b"", stderr=b"")

            with pytest.raises(FFmpegError, match="no output"):
                encoder.encode(sample_wav_bytes)


class TestAudioProcessor:
    """Tests for master/preview assembly."""

    @pytest.mark.unit
    def test_copy_encoder_publishes_master_as_preview(self, sample_wav_bytes):
        artifacts = AudioProcessor(CopyPreviewEncoder()).process(sample_wav_bytes, "wav")

        assert artifacts.master == sample_wav_bytes
        assert artifacts.preview == sample_wav_bytes

    @pytest.mark.unit
    def test_uses_encoder_output_as_preview(self, sample_wav_bytes):
        encoder = MagicMock()
        encoder.encode.return_value = b"ID3preview"

        artifacts = AudioProcessor(encoder).process(sample_wav_bytes, "wav")

        encoder.encode.assert_called_once_with(sample_wav_bytes)
        assert artifacts.preview == b"ID3preview"

    @pytest.mark.unit
    def test_empty_audio_is_rejected(self):
        with pytest.raises(InvalidAudioError):
            AudioProcessor().process(b"", "wav")

    @pytest.mark.unit
    def test_empty_preview_is_rejected(self, sample_wav_bytes):
        encoder = MagicMock()
        encoder.encode.return_value = b""

        with pytest.raises(InvalidAudioError):
            AudioProcessor(encoder).process(sample_wav_bytes, "wav")

    @pytest.mark.unit
    def test_get_preview_encoder(self):
        assert isinstance(get_preview_encoder("ffmpeg"), FFmpegPreviewEncoder)
        assert isinstance(get_preview_encoder("copy"), CopyPreviewEncoder)
