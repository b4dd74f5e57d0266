"""
Face geometry helpers used by the face signal source.

Pure NumPy: head pose angles from a rotation matrix, eye aspect ratio (EAR)
and its mapping to an eye-open probability, and a small IoU tracker that
hands out stable tracking ids across consecutive frames.
"""

import numpy as np
from typing import Dict, List, Optional, Sequence, Tuple

from .signals import BoundingBox, Point
from ..utils.logger import get_logger

logger = get_logger(__name__)


# MediaPipe face mesh indices, ordered p1..p6 for the EAR formula:
# outer corner, two upper lid points, inner corner, two lower lid points
LEFT_EYE_EAR_INDICES = (362, 385, 387, 263, 373, 380)
RIGHT_EYE_EAR_INDICES = (33, 160, 158, 133, 153, 144)

# Iris centers (available with refine_landmarks=True)
LEFT_IRIS_CENTER = 473
RIGHT_IRIS_CENTER = 468

# Nose tip, chin, eye corners, mouth corners; matches POSE_MODEL_POINTS
POSE_LANDMARK_INDICES = (1, 152, 226, 446, 57, 287)

POSE_MODEL_POINTS = np.array([
    (0.0, 0.0, 0.0),             # Nose tip
    (0.0, -330.0, -65.0),        # Chin
    (-225.0, 170.0, -135.0),     # Left eye left corner
    (225.0, 170.0, -135.0),      # Right eye right corner
    (-150.0, -150.0, -125.0),    # Left mouth corner
    (150.0, -150.0, -125.0),     # Right mouth corner
], dtype=np.float64)


def normalize_angle(angle: float) -> float:
    """Normalize angle to [-90, 90] range."""
    while angle > 90.0:
        angle -= 180.0
    while angle < -90.0:
        angle += 180.0
    return angle


def rotation_matrix_to_euler_angles(R: np.ndarray) -> Tuple[float, float, float]:
    """Convert rotation matrix to Euler angles (pitch, yaw, roll) in degrees."""
    sy = np.sqrt(R[0, 0] * R[0, 0] + R[1, 0] * R[1, 0])

    if sy >= 1e-6:
        pitch = np.arctan2(R[2, 1], R[2, 2])
        yaw = np.arctan2(-R[2, 0], sy)
        roll = np.arctan2(R[1, 0], R[0, 0])
    else:
        pitch = np.arctan2(-R[1, 2], R[1, 1])
        yaw = np.arctan2(-R[2, 0], sy)
        roll = 0.0

    return (normalize_angle(float(np.degrees(pitch))),
            normalize_angle(float(np.degrees(yaw))),
            normalize_angle(float(np.degrees(roll))))


def camera_matrix_for(width: int, height: int) -> np.ndarray:
    """Approximate pinhole camera matrix with focal length equal to the frame width."""
    focal_length = float(width)
    return np.array([
        [focal_length, 0.0, width / 2.0],
        [0.0, focal_length, height / 2.0],
        [0.0, 0.0, 1.0]
    ], dtype=np.float64)


def eye_aspect_ratio(eye_points: Sequence[Point]) -> Optional[float]:
    """
    Eye aspect ratio of six eye landmarks.

    Returns None when fewer than six points are given or the eye width is zero.
    """
    if len(eye_points) < 6:
        return None

    points = np.asarray(eye_points[:6], dtype=np.float64)

    # Vertical distances
    A = np.linalg.norm(points[1] - points[5])
    B = np.linalg.norm(points[2] - points[4])

    # Horizontal distance
    C = np.linalg.norm(points[0] - points[3])
    if C <= 0:
        return None

    return float((A + B) / (2.0 * C))


def ear_to_open_probability(ear: Optional[float], ear_closed: float = 0.15,
                            ear_open: float = 0.30) -> Optional[float]:
    """Map an EAR linearly onto [0, 1] between the closed and open references."""
    if ear is None:
        return None
    probability = (ear - ear_closed) / (ear_open - ear_closed)
    return float(min(1.0, max(0.0, probability)))


def bounding_box_from_points(points: Sequence[Point]) -> Optional[BoundingBox]:
    if len(points) == 0:
        return None
    coords = np.asarray(points, dtype=np.float64)
    left, top = coords.min(axis=0)
    right, bottom = coords.max(axis=0)
    return BoundingBox(left=float(left), top=float(top),
                       width=float(right - left), height=float(bottom - top))


def calculate_iou(box1: BoundingBox, box2: BoundingBox) -> float:
    """Calculate Intersection over Union between two bounding boxes."""
    x_left = max(box1.left, box2.left)
    y_top = max(box1.top, box2.top)
    x_right = min(box1.right, box2.right)
    y_bottom = min(box1.bottom, box2.bottom)

    if x_right < x_left or y_bottom < y_top:
        return 0.0

    intersection = (x_right - x_left) * (y_bottom - y_top)
    union = box1.width * box1.height + box2.width * box2.height - intersection

    return intersection / union if union > 0 else 0.0


class FaceTracker:
    """
    Assigns tracking ids by IoU matching against the previous frame's boxes.

    Ids are never reused; a track that goes unmatched for more than
    `max_misses` consecutive frames is retired.
    """

    def __init__(self, iou_threshold: float = 0.3, max_misses: int = 15):
        self.iou_threshold = iou_threshold
        self.max_misses = max_misses
        self.tracks: Dict[int, Dict] = {}  # track_id -> {bbox, misses}
        self.next_track_id = 1

    def update(self, boxes: List[BoundingBox]) -> List[int]:
        """
        Match this frame's boxes to existing tracks.

        Returns:
            One tracking id per box, in input order
        """
        assigned: List[int] = []
        matched = set()

        for bbox in boxes:
            best_match = None
            best_iou = self.iou_threshold

            for track_id, track in self.tracks.items():
                if track_id in matched:
                    continue
                iou = calculate_iou(bbox, track['bbox'])
                if iou > best_iou:
                    best_iou = iou
                    best_match = track_id

            if best_match is None:
                best_match = self.next_track_id
                self.next_track_id += 1
                logger.debug(f"New face track {best_match}")

            self.tracks[best_match] = {'bbox': bbox, 'misses': 0}
            matched.add(best_match)
            assigned.append(best_match)

        # Age unmatched tracks and drop stale ones
        stale_ids = []
        for track_id, track in self.tracks.items():
            if track_id in matched:
                continue
            track['misses'] += 1
            if track['misses'] > self.max_misses:
                stale_ids.append(track_id)

        for track_id in stale_ids:
            del self.tracks[track_id]
            logger.debug(f"Face track {track_id} retired")

        return assigned

    def reset(self) -> None:
        """Forget every track; ids keep increasing."""
        self.tracks.clear()
