"""
OpenCV heads-up display for the attention monitor.

Draws the engine snapshot onto camera frames: status panel, face boxes,
calibration and shift prompts, the statistics block, and the alert pulse
and shake effects.
"""

import cv2
import numpy as np
from typing import Optional, Tuple

from ..core.alert_escalation import AlertLevel
from ..core.attention_engine import EnginePhase, EngineSnapshot
from ..core.shift_timer import format_mm_ss
from ..core.signals import FrameSignal

Color = Tuple[int, int, int]

FONT = cv2.FONT_HERSHEY_SIMPLEX
PANEL_BG: Color = (20, 20, 30)
RED: Color = (0, 0, 255)
GREEN: Color = (0, 255, 0)
YELLOW: Color = (0, 255, 255)
WHITE: Color = (255, 255, 255)
GREY: Color = (200, 200, 200)

# (half period in ms, peak alpha) of the red pulse per alert level
PULSE_PROFILE = {
    AlertLevel.SOFT: (700, 0.35),
    AlertLevel.STRONG: (350, 0.5),
}

SHAKE_AMPLITUDE_PX = 10
SHAKE_HALF_PERIOD_MS = 60


def triangle_wave(now_ms: int, half_period_ms: int) -> float:
    """0 -> 1 -> 0 ramp repeating every 2 * half_period_ms."""
    phase = (now_ms % (2 * half_period_ms)) / half_period_ms
    return phase if phase <= 1.0 else 2.0 - phase


def pulse_alpha(level: AlertLevel, now_ms: int) -> float:
    """Current opacity of the red alert overlay; 0 when no alert is active."""
    profile = PULSE_PROFILE.get(level)
    if profile is None:
        return 0.0
    half_period_ms, peak = profile
    return peak * triangle_wave(now_ms, half_period_ms)


def shake_offset(now_ms: int) -> int:
    """Horizontal frame offset in pixels, oscillating between -10 and +10."""
    return int(round(-SHAKE_AMPLITUDE_PX + 2 * SHAKE_AMPLITUDE_PX * triangle_wave(now_ms, SHAKE_HALF_PERIOD_MS)))


def draw_panel(frame: np.ndarray, x: int, y: int, w: int, h: int,
               border_color: Color, title: Optional[str] = None) -> None:
    """Semi-transparent panel with a colored border and optional title."""
    overlay = frame.copy()
    cv2.rectangle(overlay, (x, y), (x + w, y + h), PANEL_BG, -1)
    cv2.addWeighted(overlay, 0.75, frame, 0.25, 0, frame)
    cv2.rectangle(frame, (x, y), (x + w, y + h), border_color, 2)
    if title:
        cv2.putText(frame, title, (x + 10, y + 25), FONT, 0.65, border_color, 2)


def draw_centered_text(frame: np.ndarray, text: str, y: int, scale: float,
                       color: Color, thickness: int = 2) -> None:
    (text_w, _), _ = cv2.getTextSize(text, FONT, scale, thickness)
    x = max(0, (frame.shape[1] - text_w) // 2)
    cv2.putText(frame, text, (x, y), FONT, scale, color, thickness)


def draw_faces(frame: np.ndarray, frame_signal: Optional[FrameSignal]) -> None:
    """Box, tracking id and landmark dots for every detected face."""
    if frame_signal is None:
        return

    for index, face in enumerate(frame_signal.faces):
        color = GREEN if index == 0 else YELLOW
        if face.bounding_box is not None:
            x, y, w, h = face.bounding_box.as_xywh()
            cv2.rectangle(frame, (x, y), (x + w, y + h), color, 2)
            label = f"Face {face.tracking_id}" if face.tracking_id is not None else "Face"
            cv2.putText(frame, label, (x, max(15, y - 10)), FONT, 0.5, color, 2)

        for lx, ly in face.landmarks.values():
            cv2.circle(frame, (int(lx), int(ly)), 3, (255, 0, 0), -1)


def draw_status_panel(frame: np.ndarray, snapshot: EngineSnapshot, fps: float) -> None:
    x, y, w, h = 15, 15, 300, 110
    draw_panel(frame, x, y, w, h, (100, 150, 255), "ATTENTION STATUS")

    if snapshot.phase is EnginePhase.MONITORING:
        status_color = RED if snapshot.alert_level is not AlertLevel.INACTIVE else GREEN
    else:
        status_color = GREY
    cv2.putText(frame, snapshot.status_text, (x + 10, y + 50), FONT, 0.6, status_color, 2)
    cv2.putText(frame, snapshot.shift_text, (x + 10, y + 75), FONT, 0.6, WHITE, 2)

    fps_color = GREEN if fps > 20 else YELLOW if fps > 10 else RED
    cv2.putText(frame, f"FPS: {fps:.1f}  Dropped: {snapshot.dropped_frames}", (x + 10, y + 98),
                FONT, 0.5, fps_color, 1)


def draw_stats_panel(frame: np.ndarray, snapshot: EngineSnapshot) -> None:
    if snapshot.stats is None:
        return

    h, w = frame.shape[:2]
    x, y = 15, h - 100
    draw_panel(frame, x, y, 230, 85, (150, 100, 255))

    stats = snapshot.stats
    lines = [
        f"Focus {stats.focus_percent}%",
        f"Look-aways {stats.look_away_count}",
        f"Longest {format_mm_ss(stats.longest_focus_ms)}",
    ]
    for i, line in enumerate(lines):
        cv2.putText(frame, line, (x + 10, y + 25 + i * 22), FONT, 0.55, WHITE, 1)


def draw_calibration_prompt(frame: np.ndarray, snapshot: EngineSnapshot) -> None:
    h, w = frame.shape[:2]
    draw_panel(frame, w // 2 - 220, h // 2 - 60, 440, 110, (255, 200, 150))
    draw_centered_text(frame, "Hold still and look straight at the screen", h // 2 - 20, 0.55, WHITE, 1)
    draw_centered_text(frame, snapshot.calibration_prompt, h // 2 + 20, 0.8, YELLOW)


def draw_idle_prompt(frame: np.ndarray) -> None:
    h, w = frame.shape[:2]
    draw_panel(frame, w // 2 - 200, h // 2 - 40, 400, 80, (100, 255, 100))
    draw_centered_text(frame, "Press SPACE to start calibration", h // 2 + 8, 0.6, WHITE)


def draw_shift_prompt(frame: np.ndarray, snapshot: EngineSnapshot) -> None:
    """Blocking operator-rotation prompt; covers most of the frame."""
    h, w = frame.shape[:2]
    draw_panel(frame, 40, h // 2 - 90, w - 80, 180, RED, "SHIFT CHANGE")
    draw_centered_text(frame, snapshot.shift_prompt, h // 2, 0.6, WHITE)
    draw_centered_text(frame, "Press 'a' to acknowledge", h // 2 + 50, 0.55, GREY, 1)


def apply_alert_pulse(frame: np.ndarray, level: AlertLevel, now_ms: int) -> None:
    alpha = pulse_alpha(level, now_ms)
    if alpha <= 0:
        return
    red = np.zeros_like(frame)
    red[:, :] = RED
    cv2.addWeighted(red, alpha, frame, 1.0 - alpha, 0, frame)


def apply_shake(frame: np.ndarray, now_ms: int) -> np.ndarray:
    offset = shake_offset(now_ms)
    h, w = frame.shape[:2]
    matrix = np.float32([[1, 0, offset], [0, 1, 0]])
    return cv2.warpAffine(frame, matrix, (w, h), borderMode=cv2.BORDER_REPLICATE)


def render(frame: np.ndarray, snapshot: EngineSnapshot, frame_signal: Optional[FrameSignal],
           now_ms: int, fps: float = 0.0) -> np.ndarray:
    """
    Draw the full HUD for one frame.

    Args:
        frame: BGR camera frame (left untouched)
        snapshot: Engine snapshot taken for this frame
        frame_signal: Detector output for this frame, for face boxes
        now_ms: Wall clock in ms, drives the pulse and shake animation
        fps: Measured loop rate

    Returns:
        New frame with the overlay drawn
    """
    output = frame.copy()

    if snapshot.pulse_active:
        apply_alert_pulse(output, snapshot.alert_level, now_ms)

    draw_faces(output, frame_signal)
    draw_status_panel(output, snapshot, fps)

    if snapshot.warning_text:
        draw_centered_text(output, snapshot.warning_text, 170, 1.2, RED, 3)

    if snapshot.phase is EnginePhase.IDLE:
        draw_idle_prompt(output)
    elif snapshot.phase is EnginePhase.CALIBRATING:
        draw_calibration_prompt(output, snapshot)
    else:
        draw_stats_panel(output, snapshot)

    if snapshot.shift_pending:
        draw_shift_prompt(output, snapshot)

    if snapshot.shake_active:
        output = apply_shake(output, now_ms)

    return output
