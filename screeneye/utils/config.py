"""
Configuration management for the ScreenEye attention monitor.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional
import json


# Calibration windows supported by the monitor. "standard" is the default
# session window, "extended" the longer window used for slower setups.
CALIBRATION_WINDOWS_MS = {
    "standard": 5_000,
    "extended": 10_000,
}


@dataclass
class CameraConfig:
    """Camera configuration settings."""
    device_id: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30


@dataclass
class DetectorConfig:
    """Face signal source (MediaPipe face mesh) settings."""
    max_num_faces: int = 2
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    track_iou_threshold: float = 0.3
    max_track_misses: int = 15
    ear_closed: float = 0.15  # EAR mapped to eye-open probability 0.0
    ear_open: float = 0.30    # EAR mapped to eye-open probability 1.0


@dataclass
class CalibrationConfig:
    """Baseline calibration settings."""
    duration_ms: int = CALIBRATION_WINDOWS_MS["standard"]
    min_samples: int = 20
    min_eye_samples: int = 10


@dataclass
class GazeConfig:
    """Looking/away classification thresholds."""
    yaw_tolerance_deg: float = 20.0
    pitch_tolerance_deg: float = 20.0
    eye_down_ratio_threshold: float = 0.04
    eye_closed_probability: float = 0.4


@dataclass
class AlertConfig:
    """Alert escalation thresholds and tone timing."""
    soft_after_ms: int = 2_000
    strong_after_ms: int = 5_000
    soft_cooldown_ms: int = 2_500
    strong_cooldown_ms: int = 1_500
    soft_tone_ms: int = 200
    strong_tone_ms: int = 350


@dataclass
class ShiftConfig:
    """Operator rotation (shift) settings."""
    duration_ms: int = 10 * 1000
    tick_interval_ms: int = 1_000
    alert_tone_ms: int = 500


@dataclass
class StorageConfig:
    """Event log storage settings."""
    database_path: str = "data/screeneye.db"
    recent_limit: int = 200


@dataclass
class AudioConfig:
    """Alert tone playback settings."""
    enabled: bool = True
    volume_percent: int = 75
    sample_rate: int = 44100
    tone_frequencies: Dict[str, float] = field(default_factory=lambda: {
        "soft": 880.0,
        "strong": 1320.0,
        "shift": 660.0,
    })


@dataclass
class LoggingConfig:
    """Application logging settings."""
    enable_file_logging: bool = True
    log_dir: str = "logs"
    console_level: str = "ERROR"
    file_level: str = "DEBUG"


class Config:
    """Main configuration class for the ScreenEye attention monitor."""

    SECTIONS = (
        'camera', 'detector', 'calibration', 'gaze',
        'alert', 'shift', 'storage', 'audio', 'logging',
    )

    def __init__(self, config_file: Optional[str] = None):
        """Initialize configuration with optional config file."""
        self.camera = CameraConfig()
        self.detector = DetectorConfig()
        self.calibration = CalibrationConfig()
        self.gaze = GazeConfig()
        self.alert = AlertConfig()
        self.shift = ShiftConfig()
        self.storage = StorageConfig()
        self.audio = AudioConfig()
        self.logging = LoggingConfig()
        self.validation_errors: List[str] = []

        if config_file and os.path.exists(config_file):
            self.load_from_file(config_file)

    def load_from_file(self, config_file: str) -> None:
        """Load configuration from JSON file."""
        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)
        except (OSError, ValueError) as e:
            print(f"Warning: Could not load config file {config_file}: {e}")
            return

        # Update each config section, ignoring unknown sections and keys
        for section_name, section_data in config_data.items():
            if section_name not in self.SECTIONS or not isinstance(section_data, dict):
                continue
            section = getattr(self, section_name)
            for key, value in section_data.items():
                if hasattr(section, key):
                    setattr(section, key, value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert every config section to a plain dictionary."""
        config_data = {}
        for section_name in self.SECTIONS:
            section = getattr(self, section_name)
            config_data[section_name] = {
                key: getattr(section, key)
                for key in section.__dataclass_fields__.keys()
            }
        return config_data

    def save_to_file(self, config_file: str) -> None:
        """Save current configuration to JSON file."""
        directory = os.path.dirname(config_file)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(config_file, 'w') as f:
                json.dump(self.to_dict(), f, indent=2)
        except OSError as e:
            print(f"Warning: Could not save config file {config_file}: {e}")

    def set_calibration_window(self, window: str) -> None:
        """Select one of the named calibration windows."""
        if window not in CALIBRATION_WINDOWS_MS:
            raise ValueError(
                f"Unknown calibration window '{window}', "
                f"expected one of {sorted(CALIBRATION_WINDOWS_MS)}"
            )
        self.calibration.duration_ms = CALIBRATION_WINDOWS_MS[window]

    def validate_config(self) -> bool:
        """Validate configuration settings."""
        errors = []

        # Validate camera settings
        if self.camera.width <= 0 or self.camera.height <= 0:
            errors.append("Camera dimensions must be positive")

        if self.camera.fps <= 0:
            errors.append("Camera FPS must be positive")

        # Validate detector settings
        for name in ('min_detection_confidence', 'min_tracking_confidence', 'track_iou_threshold'):
            value = getattr(self.detector, name)
            if value < 0 or value > 1:
                errors.append(f"Detector {name} must be between 0 and 1")

        if self.detector.ear_closed >= self.detector.ear_open:
            errors.append("Detector ear_closed must be below ear_open")

        # Validate calibration settings
        if self.calibration.duration_ms <= 0:
            errors.append("Calibration duration must be positive")

        if self.calibration.min_samples < 1 or self.calibration.min_eye_samples < 1:
            errors.append("Calibration sample minimums must be at least 1")

        if self.calibration.min_eye_samples > self.calibration.min_samples:
            errors.append("Eye calibration minimum cannot exceed the sample minimum")

        # Validate gaze thresholds
        if self.gaze.yaw_tolerance_deg <= 0 or self.gaze.pitch_tolerance_deg <= 0:
            errors.append("Gaze tolerances must be positive")

        if self.gaze.eye_closed_probability < 0 or self.gaze.eye_closed_probability > 1:
            errors.append("Eye closed probability must be between 0 and 1")

        # Validate alert escalation
        if self.alert.soft_after_ms <= 0 or self.alert.soft_after_ms >= self.alert.strong_after_ms:
            errors.append("Alert soft threshold must be positive and below the strong threshold")

        for name in ('soft_cooldown_ms', 'strong_cooldown_ms', 'soft_tone_ms', 'strong_tone_ms'):
            if getattr(self.alert, name) <= 0:
                errors.append(f"Alert {name} must be positive")

        # Validate shift settings
        if self.shift.duration_ms <= 0 or self.shift.tick_interval_ms <= 0:
            errors.append("Shift duration and tick interval must be positive")

        if self.storage.recent_limit <= 0:
            errors.append("Storage recent limit must be positive")

        if self.audio.volume_percent < 0 or self.audio.volume_percent > 100:
            errors.append("Audio volume must be between 0 and 100")

        self.validation_errors = errors
        if errors:
            print("Configuration validation errors:")
            for error in errors:
                print(f"  - {error}")
            return False

        return True


# Default configuration file path
DEFAULT_CONFIG_FILE = "data/configs/default_config.json"

# Global configuration instance, loaded from the default file when present
config = Config(DEFAULT_CONFIG_FILE)


def ensure_default_config(config_file: str = DEFAULT_CONFIG_FILE) -> str:
    """Write the current global configuration if no default file exists yet."""
    if not os.path.exists(config_file):
        config.save_to_file(config_file)
    return config_file
