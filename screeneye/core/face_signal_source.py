"""
Face Signal Source

Turns BGR camera frames into FrameSignals using the MediaPipe face mesh:
head yaw/pitch from a six-point solvePnP fit, eye-open probabilities from the
eye aspect ratio, the eye-center ratio from the iris centers, and tracking
ids from an IoU tracker. Any detector failure yields an empty frame.
"""

import cv2
import mediapipe as mp
import numpy as np
from typing import List, Optional

from .face_geometry import (
    LEFT_EYE_EAR_INDICES, LEFT_IRIS_CENTER, POSE_LANDMARK_INDICES, POSE_MODEL_POINTS,
    RIGHT_EYE_EAR_INDICES, RIGHT_IRIS_CENTER, FaceTracker, bounding_box_from_points,
    camera_matrix_for, ear_to_open_probability, eye_aspect_ratio,
    rotation_matrix_to_euler_angles,
)
from .signals import FaceSignal, FrameSignal, eye_center_ratio
from ..utils.config import DetectorConfig
from ..utils.logger import get_logger, log_performance_metrics

logger = get_logger(__name__)


class FaceSignalSource:
    """MediaPipe face mesh adapter producing FaceSignals."""

    def __init__(self, settings: Optional[DetectorConfig] = None):
        """
        Initialize the face mesh and tracker.

        Args:
            settings: Detector configuration; defaults when omitted
        """
        self.settings = settings or DetectorConfig()
        self.face_mesh = mp.solutions.face_mesh.FaceMesh(
            static_image_mode=False,
            max_num_faces=self.settings.max_num_faces,
            refine_landmarks=True,
            min_detection_confidence=self.settings.min_detection_confidence,
            min_tracking_confidence=self.settings.min_tracking_confidence,
        )
        self.tracker = FaceTracker(
            iou_threshold=self.settings.track_iou_threshold,
            max_misses=self.settings.max_track_misses,
        )
        self.dist_coeffs = np.zeros((4, 1))
        self.failed_frames = 0

        logger.info(f"Face signal source initialized (max faces: {self.settings.max_num_faces})")

    @log_performance_metrics
    def process(self, frame: np.ndarray, rotation_degrees: int = 0) -> FrameSignal:
        """
        Detect faces in a BGR frame.

        Returns:
            FrameSignal; empty when no face is found or the detector fails
        """
        h, w = frame.shape[:2]
        try:
            rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            results = self.face_mesh.process(rgb_frame)
        except Exception as e:
            self.failed_frames += 1
            logger.log_error_with_context(e, "face mesh processing")
            return FrameSignal(width=w, height=h, rotation_degrees=rotation_degrees)

        if not results.multi_face_landmarks:
            self.tracker.update([])
            return FrameSignal(width=w, height=h, rotation_degrees=rotation_degrees)

        faces: List[FaceSignal] = []
        for face_landmarks in results.multi_face_landmarks:
            points = [(lm.x * w, lm.y * h) for lm in face_landmarks.landmark]
            face = self._build_face(points, w, h)
            if face is not None:
                faces.append(face)

        track_ids = self.tracker.update([face.bounding_box for face in faces])
        for face, track_id in zip(faces, track_ids):
            face.tracking_id = track_id

        return FrameSignal(faces=faces, width=w, height=h, rotation_degrees=rotation_degrees)

    def _build_face(self, points, w: int, h: int) -> Optional[FaceSignal]:
        if len(points) <= max(POSE_LANDMARK_INDICES):
            return None

        image_points = np.array([points[i] for i in POSE_LANDMARK_INDICES], dtype=np.float64)
        success, rotation_vec, _ = cv2.solvePnP(
            POSE_MODEL_POINTS, image_points, camera_matrix_for(w, h), self.dist_coeffs
        )
        if not success:
            return None

        rotation_matrix, _ = cv2.Rodrigues(rotation_vec)
        pitch, yaw, _ = rotation_matrix_to_euler_angles(rotation_matrix)

        left_ear = eye_aspect_ratio([points[i] for i in LEFT_EYE_EAR_INDICES])
        right_ear = eye_aspect_ratio([points[i] for i in RIGHT_EYE_EAR_INDICES])

        # Iris centers only exist with refined landmarks
        left_eye = points[LEFT_IRIS_CENTER] if len(points) > LEFT_IRIS_CENTER else None
        right_eye = points[RIGHT_IRIS_CENTER] if len(points) > RIGHT_IRIS_CENTER else None

        bbox = bounding_box_from_points(points)
        landmarks = {'nose_tip': points[POSE_LANDMARK_INDICES[0]]}
        if left_eye is not None:
            landmarks['left_eye'] = left_eye
        if right_eye is not None:
            landmarks['right_eye'] = right_eye

        return FaceSignal(
            yaw=yaw,
            pitch=pitch,
            left_eye_open=ear_to_open_probability(left_ear, self.settings.ear_closed, self.settings.ear_open),
            right_eye_open=ear_to_open_probability(right_ear, self.settings.ear_closed, self.settings.ear_open),
            eye_center_ratio=eye_center_ratio(left_eye, right_eye, bbox),
            bounding_box=bbox,
            landmarks=landmarks,
        )

    def close(self) -> None:
        """Release the face mesh."""
        if self.face_mesh is not None:
            self.face_mesh.close()
            self.face_mesh = None
            logger.info("Face signal source closed")
