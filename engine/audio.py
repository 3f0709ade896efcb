"""
Microphone capture with a live level meter.

Records the default input device into a single WAV blob. While recording,
each audio block updates a 0.0-1.0 level derived from frequency-domain
energy, for UI feedback.

    capture = AudioCapture(on_level=print)
    capture.start()
    ...
    blob = capture.stop()
"""

import io
import logging
import threading
from typing import Callable, Optional

import numpy as np
import soundfile as sf

from .errors import DeviceUnavailable, PermissionDenied
from .models import AudioBlob

try:
    import sounddevice as sd
except (ImportError, OSError):  # PortAudio missing on the host
    sd = None

logger = logging.getLogger(__name__)

# Same dB window a browser AnalyserNode maps onto 0-255
MIN_DECIBELS = -100.0
MAX_DECIBELS = -30.0
FFT_SIZE = 256

_PERMISSION_MARKERS = ["permission", "denied", "not authorized", "unauthorized"]


def compute_level(samples: np.ndarray) -> float:
    """Average spectral magnitude of a block, scaled to 0.0-1.0."""
    samples = np.asarray(samples, dtype=np.float32).reshape(-1)
    if samples.size == 0:
        return 0.0
    window = samples[-FFT_SIZE:]
    spectrum = np.abs(np.fft.rfft(window * np.hanning(window.size))) / max(window.size / 2, 1)
    decibels = 20 * np.log10(spectrum + 1e-12)
    scaled = (decibels - MIN_DECIBELS) / (MAX_DECIBELS - MIN_DECIBELS)
    return float(np.clip(scaled, 0.0, 1.0).mean())


class AudioCapture:
    """Single-stream microphone recorder.

    Only one recording at a time; start() while recording raises RuntimeError.
    The input stream is closed on every stop path.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        on_level: Optional[Callable[[float], None]] = None,
        backend=None,
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self._on_level = on_level
        self._backend = backend if backend is not None else sd
        self._lock = threading.Lock()
        self._stream = None
        self._starting = False
        self._frames: list[np.ndarray] = []
        self._level = 0.0
        self._blob: Optional[AudioBlob] = None

    @property
    def is_recording(self) -> bool:
        return self._stream is not None

    @property
    def level(self) -> float:
        return self._level

    @property
    def blob(self) -> Optional[AudioBlob]:
        return self._blob

    def start(self):
        """Acquire the microphone and begin recording.

        Raises:
            PermissionDenied: The platform refused microphone access.
            DeviceUnavailable: No input device or no audio backend.
        """
        if self._backend is None:
            raise DeviceUnavailable("sounddevice/PortAudio is not available on this host")
        with self._lock:
            if self._stream is not None or self._starting:
                raise RuntimeError("capture already running")
            self._starting = True
            self._frames = []
            self._blob = None
            self._level = 0.0

        stream = None
        opened = False
        try:
            stream = self._backend.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="float32",
                callback=self._audio_callback,
            )
            stream.start()
            opened = True
        except Exception as e:
            if stream is not None:
                stream.close()
            message = str(e).lower()
            if any(m in message for m in _PERMISSION_MARKERS):
                logger.error(f"Microphone permission denied: {e}")
                raise PermissionDenied(f"Microphone access denied: {e}") from e
            logger.error(f"Could not open input device: {e}")
            raise DeviceUnavailable(f"Could not open input device: {e}") from e
        finally:
            with self._lock:
                self._starting = False
                if opened:
                    self._stream = stream
        logger.info(f"Recording started | {self.sample_rate}Hz | {self.channels}ch")

    def _audio_callback(self, indata, frames, time_info, status):
        if status:
            logger.debug(f"Input stream status: {status}")
        block = np.array(indata, dtype=np.float32, copy=True)
        with self._lock:
            self._frames.append(block)
        self._level = compute_level(block)
        if self._on_level:
            self._on_level(self._level)

    def stop(self) -> AudioBlob:
        """Finalize the recording and release the microphone.

        Stopping early is fine: whatever was captured becomes the blob.
        """
        with self._lock:
            stream = self._stream
            self._stream = None
        if stream is None:
            raise RuntimeError("capture is not running")

        try:
            stream.stop()
        finally:
            stream.close()

        with self._lock:
            frames = self._frames
            self._frames = []
        self._level = 0.0
        self._blob = self._encode(frames)
        logger.info(f"Recording stopped | {self._blob.duration_seconds:.1f}s | "
                    f"{len(self._blob.data) / 1024:.1f}KB")
        return self._blob

    def reset(self):
        """Discard the finalized blob and level. Device state is untouched."""
        with self._lock:
            self._frames = []
        self._blob = None
        self._level = 0.0

    def _encode(self, frames: list[np.ndarray]) -> AudioBlob:
        if frames:
            audio = np.concatenate(frames, axis=0)
        else:
            audio = np.zeros((0, self.channels), dtype=np.float32)
        buffer = io.BytesIO()
        sf.write(buffer, audio, self.sample_rate, format="WAV", subtype="PCM_16")
        return AudioBlob(
            data=buffer.getvalue(),
            mime_type="audio/wav",
            filename="recording.wav",
            sample_rate=self.sample_rate,
            duration_seconds=len(audio) / float(self.sample_rate),
        )

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        if self.is_recording:
            self.stop()
        return False
