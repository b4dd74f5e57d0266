"""
Per-frame face signals consumed by the attention engine.

A signal source produces one FrameSignal per processed camera frame. The
engine only ever looks at the first face in the list; extra faces are kept
for rendering.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


Point = Tuple[float, float]


@dataclass(frozen=True)
class BoundingBox:
    """Face bounding box in frame pixel coordinates."""
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def as_xywh(self) -> Tuple[int, int, int, int]:
        return int(self.left), int(self.top), int(self.width), int(self.height)


@dataclass
class FaceSignal:
    """Head pose and eye state of one detected face."""
    yaw: float
    pitch: float
    left_eye_open: Optional[float] = None
    right_eye_open: Optional[float] = None
    eye_center_ratio: Optional[float] = None
    tracking_id: Optional[int] = None
    bounding_box: Optional[BoundingBox] = None
    landmarks: Dict[str, Point] = field(default_factory=dict)


@dataclass
class FrameSignal:
    """Everything the detector reported for one frame."""
    faces: List[FaceSignal] = field(default_factory=list)
    width: int = 0
    height: int = 0
    rotation_degrees: int = 0

    def primary_face(self) -> Optional[FaceSignal]:
        """The face used for decisions: always the first one reported."""
        return self.faces[0] if self.faces else None


def eye_center_ratio(left_eye: Optional[Point], right_eye: Optional[Point],
                     bounding_box: Optional[BoundingBox]) -> Optional[float]:
    """
    Vertical position of the midpoint between both eyes, normalized to the
    face box height (0.0 = top edge, 1.0 = bottom edge).

    Returns None when either eye or the box is missing, or the box is empty.
    """
    if left_eye is None or right_eye is None or bounding_box is None:
        return None
    if bounding_box.height <= 0:
        return None
    center_y = (left_eye[1] + right_eye[1]) / 2.0
    return (center_y - bounding_box.top) / bounding_box.height
