"""
Gaze Classifier Module

Decides per frame whether the monitored person is looking at the screen,
relative to the calibrated baseline.
"""

from enum import Enum
from typing import Optional

from .calibration import Baseline
from .signals import FaceSignal


class GazeDecision(Enum):
    LOOKING = "looking"
    AWAY = "away"


class GazeClassifier:
    """Stateless looking/away classifier."""

    def __init__(self, yaw_tolerance_deg: float = 20.0, pitch_tolerance_deg: float = 20.0,
                 eye_down_ratio_threshold: float = 0.04, eye_closed_probability: float = 0.4):
        """
        Initialize classifier.

        Args:
            yaw_tolerance_deg: Allowed |yaw - baseline yaw|
            pitch_tolerance_deg: Allowed |pitch - baseline pitch|
            eye_down_ratio_threshold: Eye ratio increase over baseline that counts as looking down
            eye_closed_probability: Both eyes below this open probability count as closed
        """
        self.yaw_tolerance_deg = yaw_tolerance_deg
        self.pitch_tolerance_deg = pitch_tolerance_deg
        self.eye_down_ratio_threshold = eye_down_ratio_threshold
        self.eye_closed_probability = eye_closed_probability

    def classify(self, face: Optional[FaceSignal], baseline: Baseline) -> GazeDecision:
        """Classify the first face of a frame against the baseline."""
        if face is None:
            return GazeDecision.AWAY

        if not self.is_head_aligned(face, baseline):
            return GazeDecision.AWAY

        if self.is_eyes_down(face, baseline) or self.is_eyes_closed(face):
            return GazeDecision.AWAY

        return GazeDecision.LOOKING

    def is_head_aligned(self, face: FaceSignal, baseline: Baseline) -> bool:
        return (abs(face.yaw - baseline.yaw) <= self.yaw_tolerance_deg and
                abs(face.pitch - baseline.pitch) <= self.pitch_tolerance_deg)

    def is_eyes_down(self, face: FaceSignal, baseline: Baseline) -> bool:
        """Eyes lowered relative to baseline; never true without both ratios."""
        if baseline.eye_ratio is None or face.eye_center_ratio is None:
            return False
        return face.eye_center_ratio - baseline.eye_ratio >= self.eye_down_ratio_threshold

    def is_eyes_closed(self, face: FaceSignal) -> bool:
        """Both eyes closed; a missing probability never counts as closed."""
        if face.left_eye_open is None or face.right_eye_open is None:
            return False
        return (face.left_eye_open < self.eye_closed_probability and
                face.right_eye_open < self.eye_closed_probability)
