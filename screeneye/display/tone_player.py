"""
Alert tone playback through the pygame mixer.

Each tone kind is a short sine beep synthesized with NumPy; playback never
blocks the caller. If the mixer cannot be opened the player stays silent.
"""

import numpy as np
import pygame
from typing import Dict, Optional, Tuple

from ..core.alert_escalation import ToneKind, ToneRequest
from ..utils.config import AudioConfig
from ..utils.logger import get_logger

logger = get_logger(__name__)


def synthesize_tone(frequency: float, duration_ms: int, sample_rate: int = 44100,
                    channels: int = 2) -> np.ndarray:
    """
    Build a 16-bit sine beep with short linear fades to avoid clicks.

    Returns:
        int16 array of shape (samples, channels), or (samples,) for mono
    """
    sample_count = max(1, int(sample_rate * duration_ms / 1000))
    t = np.arange(sample_count) / sample_rate
    wave = np.sin(2 * np.pi * frequency * t)

    fade = min(sample_count // 2, int(sample_rate * 0.005))
    if fade > 0:
        ramp = np.linspace(0.0, 1.0, fade)
        wave[:fade] *= ramp
        wave[-fade:] *= ramp[::-1]

    samples = (wave * 32767 * 0.8).astype(np.int16)
    if channels == 1:
        return samples
    return np.ascontiguousarray(np.repeat(samples[:, None], channels, axis=1))


class TonePlayer:
    """Plays ToneRequests without blocking."""

    def __init__(self, settings: Optional[AudioConfig] = None):
        self.settings = settings or AudioConfig()
        self.enabled = self.settings.enabled
        self.channels = 2
        self._sounds: Dict[Tuple[str, int], "pygame.mixer.Sound"] = {}

        if not self.enabled:
            logger.info("Audio alerts disabled")
            return

        try:
            pygame.mixer.init(frequency=self.settings.sample_rate, size=-16,
                              channels=self.channels, buffer=512)
            init_info = pygame.mixer.get_init()
            if init_info is not None:
                self.channels = init_info[2]
            logger.info(f"Audio mixer initialized ({self.settings.sample_rate} Hz)")
        except pygame.error as e:
            logger.log_error_with_context(e, "audio mixer init")
            self.enabled = False

    def __call__(self, request: ToneRequest) -> None:
        self.play(request)

    def play(self, request: ToneRequest) -> bool:
        """Start playing a tone; returns False when audio is unavailable."""
        if not self.enabled:
            return False

        try:
            sound = self._sound_for(request.kind, request.duration_ms)
            sound.play()
        except pygame.error as e:
            logger.log_error_with_context(e, f"tone playback ({request.kind.value})")
            return False

        logger.debug(f"Playing {request.kind.value} tone ({request.duration_ms}ms)")
        return True

    def _sound_for(self, kind: ToneKind, duration_ms: int):
        key = (kind.value, duration_ms)
        sound = self._sounds.get(key)
        if sound is None:
            frequency = self.settings.tone_frequencies.get(kind.value, 880.0)
            samples = synthesize_tone(frequency, duration_ms, self.settings.sample_rate, self.channels)
            sound = pygame.sndarray.make_sound(samples)
            sound.set_volume(self.settings.volume_percent / 100.0)
            self._sounds[key] = sound
        return sound

    def close(self) -> None:
        """Stop any playing tone and release the mixer."""
        if not self.enabled:
            return
        self.enabled = False
        pygame.mixer.stop()
        pygame.mixer.quit()
        self._sounds.clear()
        logger.info("Audio cleaned up")
