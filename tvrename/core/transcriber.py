"""Speech-to-text subtitle generation.

Used when a file has no subtitle streams at all: ffmpeg pulls a 16 kHz mono
track out of the container and whisper.cpp turns it into SubRip text.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path

from tvrename.core.errors import TranscriptionError
from tvrename.core.process import run_process
from tvrename.core.prober import ProbedStream
from tvrename.core.results import Failed, Ok, Outcome

logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000

# Surround layouts carry dialogue in the centre channel
_CENTRE_WEIGHTED_MONO = "pan=mono|c0=0.5*FC+0.25*FL+0.25*FR"


def downmix_args(stream: ProbedStream) -> list[str]:
    """ffmpeg arguments that reduce an audio stream to mono speech."""
    channels = stream.channels or 0
    if channels >= 6:
        return ["-af", _CENTRE_WEIGHTED_MONO]
    if stream.codec_name in ("truehd", "mlp") and channels == 0:
        # ffprobe cannot always read TrueHD layouts; assume surround
        return ["-af", _CENTRE_WEIGHTED_MONO]
    return ["-ac", "1"]


class SpeechToText:
    """ffmpeg + whisper.cpp subtitle generator."""

    def __init__(
        self,
        model_path: Path,
        ffmpeg_path: str = "ffmpeg",
        whisper_path: str = "whisper-cli",
        language: str = "en",
        timeout: float | None = None,
    ) -> None:
        self.model_path = Path(model_path)
        self.ffmpeg_path = ffmpeg_path
        self.whisper_path = whisper_path
        self.language = language
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "SpeechToText | None":
        """Build a generator if a speech-to-text backend is configured, else None."""
        if settings.whisper_model is None:
            logger.debug("Speech-to-text disabled: no whisper model configured")
            return None
        model = Path(settings.whisper_model).expanduser()
        if not model.is_file():
            logger.warning(f"Speech-to-text disabled: whisper model {model} does not exist")
            return None
        if shutil.which(settings.whisper_path) is None:
            logger.warning(f"Speech-to-text disabled: {settings.whisper_path} not found")
            return None
        return cls(
            model_path=model,
            ffmpeg_path=settings.ffmpeg_path,
            whisper_path=settings.whisper_path,
            language=settings.whisper_language,
            timeout=settings.process_timeout,
        )

    async def generate(
        self, video_file: Path, audio_stream: ProbedStream, target: Path
    ) -> Outcome[Path]:
        """Transcribe one audio stream of ``video_file`` into SubRip at ``target``.

        The file only appears at ``target`` after whisper has finished successfully.
        """
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return Failed(TranscriptionError(f"Cannot create cache folder {target.parent}: {e}"))
        partial_base = target.with_name(f"{target.stem}.partial")
        partial_srt = partial_base.with_name(partial_base.name + ".srt")

        try:
            with tempfile.TemporaryDirectory(prefix="tvrename-") as tmp:
                outcome = await self._transcribe(video_file, audio_stream, Path(tmp), partial_base)
        except TimeoutError:
            outcome = Failed(TranscriptionError(f"Speech-to-text timed out for {video_file.name}"))
        except BaseException:
            partial_srt.unlink(missing_ok=True)
            raise

        if not isinstance(outcome, Ok):
            partial_srt.unlink(missing_ok=True)
            return outcome

        try:
            os.replace(partial_srt, target)
        except OSError as e:
            partial_srt.unlink(missing_ok=True)
            return Failed(TranscriptionError(f"Cannot cache generated subtitles at {target}: {e}"))
        logger.info(f"Generated subtitles cached at {target}")
        return Ok(target)

    async def _transcribe(
        self, video_file: Path, audio_stream: ProbedStream, workdir: Path, partial_base: Path
    ) -> Outcome[Path]:
        """Run ffmpeg then whisper; whisper writes ``<partial_base>.srt``."""
        wav = workdir / "audio.wav"
        partial_srt = partial_base.with_name(partial_base.name + ".srt")

        logger.info(
            f"Extracting audio stream #{audio_stream.index} ({audio_stream.codec_name}, "
            f"{audio_stream.channels or '?'} channels) from {video_file.name}"
        )
        result = await run_process(
            [
                self.ffmpeg_path,
                "-nostdin",
                "-y",
                "-i",
                str(video_file),
                "-map",
                f"0:{audio_stream.index}",
                "-vn",
                "-sn",
                "-dn",
                *downmix_args(audio_stream),
                "-ar",
                str(SAMPLE_RATE),
                "-acodec",
                "pcm_s16le",
                str(wav),
            ],
            timeout=self.timeout,
        )
        if not result.ok or not wav.exists():
            return Failed(TranscriptionError(f"Audio extraction failed: {result.error_summary}"))

        logger.info(f"Transcribing {video_file.name} with {self.model_path.name}")
        result = await run_process(
            [
                self.whisper_path,
                "-m",
                str(self.model_path),
                "-l",
                self.language,
                "-osrt",
                "-of",
                str(partial_base),
                "-f",
                str(wav),
            ],
            timeout=self.timeout,
        )
        if not result.ok or not partial_srt.exists():
            return Failed(TranscriptionError(f"Speech-to-text failed: {result.error_summary}"))
        return Ok(partial_srt)
