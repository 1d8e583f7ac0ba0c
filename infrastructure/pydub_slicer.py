"""pydub implementation of the AudioSlicer interface."""

import io

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from exceptions import AudioUnreadableError
from logging_config import setup_logging

from .interfaces import AudioSlicer

logger = setup_logging()

SAMPLE_RATE = 16000
SAMPLE_WIDTH = 2
CHANNELS = 1


class PydubAudioSlicer(AudioSlicer):
    """
    Cuts windows out of bot audio and re-encodes them as 16 kHz mono WAV.

    Buffers with a RIFF header are decoded as WAV; anything else is read as
    headerless 16-bit mono PCM at 16 kHz, which is what the bots record.
    """

    def slice(self, audio_data: bytes, start: float, end: float) -> bytes:
        segment = self._decode(audio_data)
        window = segment[int(start * 1000) : int(end * 1000)]
        window = window.set_frame_rate(SAMPLE_RATE).set_channels(CHANNELS).set_sample_width(SAMPLE_WIDTH)

        buffer = io.BytesIO()
        window.export(buffer, format="wav")
        return buffer.getvalue()

    def _decode(self, audio_data: bytes) -> AudioSegment:
        try:
            if audio_data[:4] == b"RIFF":
                return AudioSegment(data=audio_data)
            usable = len(audio_data) - len(audio_data) % (SAMPLE_WIDTH * CHANNELS)
            return AudioSegment(
                data=audio_data[:usable],
                sample_width=SAMPLE_WIDTH,
                frame_rate=SAMPLE_RATE,
                channels=CHANNELS,
            )
        except (CouldntDecodeError, ValueError, EOFError) as e:
            logger.warning("Failed to decode audio", extra={"size": len(audio_data)})
            raise AudioUnreadableError("audio", str(e)) from e
