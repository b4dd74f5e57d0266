"""
Baseline Calibration Module

Establishes the per-session reference head pose (and, when the signal is
available often enough, the reference eye position) that live frames are
later compared against.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .signals import FaceSignal
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Baseline:
    """Reference pose established once per calibration."""
    yaw: float
    pitch: float
    eye_ratio: Optional[float] = None


@dataclass
class CalibrationAccumulator:
    """Running sums collected while calibrating."""
    started_at: Optional[int] = None
    sample_count: int = 0
    yaw_sum: float = 0.0
    pitch_sum: float = 0.0
    eye_ratio_sum: float = 0.0
    eye_ratio_sample_count: int = 0


class CalibrationStatus(Enum):
    WAITING = "waiting"      # no face in frame, clock not advanced
    CONTINUE = "continue"
    COMPLETE = "complete"


@dataclass
class CalibrationResult:
    """Outcome of observing one frame during calibration."""
    status: CalibrationStatus
    baseline: Optional[Baseline] = None
    remaining_seconds: int = 0
    sample_count: int = 0


class Calibrator:
    """Accumulates baseline yaw/pitch and eye ratio over a fixed window."""

    def __init__(self, duration_ms: int = 5_000, min_samples: int = 20,
                 min_eye_samples: int = 10):
        """
        Initialize calibrator.

        Args:
            duration_ms: Minimum time between the first observed face and completion
            min_samples: Minimum number of face frames before completion
            min_eye_samples: Minimum eye-ratio samples for an eye baseline
        """
        self.duration_ms = duration_ms
        self.min_samples = min_samples
        self.min_eye_samples = min_eye_samples
        self.accumulator = CalibrationAccumulator()
        self.baseline: Optional[Baseline] = None

        logger.info(f"Calibrator initialized (window: {duration_ms}ms, min samples: {min_samples})")

    @property
    def is_complete(self) -> bool:
        return self.baseline is not None

    def observe(self, face: Optional[FaceSignal], now: int) -> CalibrationResult:
        """
        Add one frame to the calibration.

        Args:
            face: First detected face, or None when no face is present
            now: Frame timestamp in ms

        Returns:
            CalibrationResult; status COMPLETE carries the new Baseline
        """
        acc = self.accumulator
        if face is None:
            return CalibrationResult(
                status=CalibrationStatus.WAITING,
                remaining_seconds=self.remaining_seconds(now),
                sample_count=acc.sample_count,
            )

        if acc.started_at is None:
            acc.started_at = now
            logger.debug(f"Calibration clock started at {now}")

        acc.sample_count += 1
        acc.yaw_sum += face.yaw
        acc.pitch_sum += face.pitch
        if face.eye_center_ratio is not None:
            acc.eye_ratio_sum += face.eye_center_ratio
            acc.eye_ratio_sample_count += 1

        elapsed = now - acc.started_at
        if elapsed >= self.duration_ms and acc.sample_count >= self.min_samples:
            self.baseline = self._build_baseline()
            logger.info(
                f"Calibration complete after {elapsed}ms / {acc.sample_count} samples: "
                f"yaw={self.baseline.yaw:.2f}, pitch={self.baseline.pitch:.2f}, "
                f"eye_ratio={self.baseline.eye_ratio}"
            )
            return CalibrationResult(
                status=CalibrationStatus.COMPLETE,
                baseline=self.baseline,
                remaining_seconds=0,
                sample_count=acc.sample_count,
            )

        return CalibrationResult(
            status=CalibrationStatus.CONTINUE,
            remaining_seconds=self.remaining_seconds(now),
            sample_count=acc.sample_count,
        )

    def _build_baseline(self) -> Baseline:
        acc = self.accumulator
        eye_ratio = None
        if acc.eye_ratio_sample_count >= self.min_eye_samples:
            eye_ratio = acc.eye_ratio_sum / acc.eye_ratio_sample_count
        else:
            logger.warning(
                f"Only {acc.eye_ratio_sample_count} eye ratio samples; "
                "eye-down checks disabled for this session"
            )
        return Baseline(
            yaw=acc.yaw_sum / acc.sample_count,
            pitch=acc.pitch_sum / acc.sample_count,
            eye_ratio=eye_ratio,
        )

    def remaining_seconds(self, now: int) -> int:
        """Whole seconds left on the calibration window, rounded up for display."""
        started_at = self.accumulator.started_at
        elapsed = 0 if started_at is None else now - started_at
        return max(0, self.duration_ms - elapsed) // 1000 + 1

    def reset(self) -> None:
        """Discard the accumulator and any baseline."""
        self.accumulator = CalibrationAccumulator()
        self.baseline = None
        logger.info("Calibration reset")
