#!/usr/bin/env python3
"""
Main entry point for the ScreenEye attention monitor.
Provides command-line interface for real-time monitoring.
"""

import os
import warnings

# Suppress TensorFlow/MediaPipe chatter
os.environ['TF_CPP_MIN_LOG_LEVEL'] = '3'
warnings.filterwarnings('ignore')

import argparse
import logging
import queue
import sys
import threading
import time

import cv2

from screeneye.core.attention_engine import AttentionEngine, EnginePhase
from screeneye.core.shift_timer import ShiftTicker
from screeneye.storage.event_log import EventLogStore, format_record
from screeneye.utils.config import CALIBRATION_WINDOWS_MS, Config, config, ensure_default_config
from screeneye.utils.logger import log_function_call, logger, set_console_level


def positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="ScreenEye real-time screen attention monitor")

    parser.add_argument("--camera", "-c", type=int, default=None,
                        help="Camera device index (default: from config)")
    parser.add_argument("--width", "-w", type=int, default=None,
                        help="Frame width (default: from config)")
    parser.add_argument("--height", type=int, default=None,
                        help="Frame height (default: from config)")
    parser.add_argument("--fps", "-f", type=int, default=None,
                        help="Target FPS (default: from config)")
    parser.add_argument("--config", type=str, default="",
                        help="Path to a JSON configuration file")
    parser.add_argument("--calibration-window", type=str, default=None,
                        choices=sorted(CALIBRATION_WINDOWS_MS),
                        help="Calibration window (standard: 5s, extended: 10s)")
    parser.add_argument("--shift-seconds", type=int, default=None,
                        help="Shift length in seconds before an operator change is required")
    parser.add_argument("--db", type=str, default=None,
                        help="Event log database path")
    parser.add_argument("--no-display", action="store_true",
                        help="Disable video display (headless mode, starts calibrating immediately; "
                             "type a, r or q followed by Enter to acknowledge, recalibrate or quit)")
    parser.add_argument("--no-audio", action="store_true",
                        help="Disable alert tones")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose output")
    parser.add_argument("--show-logs", type=positive_int, metavar="N", nargs="?", const=0, default=None,
                        help="Print the N most recent logged events and exit (default N: from config)")

    return parser.parse_args(argv)


def build_settings(args) -> Config:
    """Load configuration and apply command line overrides."""
    if args.config:
        settings = Config(args.config)
    else:
        ensure_default_config()
        settings = config

    if args.camera is not None:
        settings.camera.device_id = args.camera
    if args.width is not None:
        settings.camera.width = args.width
    if args.height is not None:
        settings.camera.height = args.height
    if args.fps is not None:
        settings.camera.fps = args.fps
    if args.calibration_window:
        settings.set_calibration_window(args.calibration_window)
    if args.shift_seconds is not None:
        settings.shift.duration_ms = args.shift_seconds * 1000
    if args.db:
        settings.storage.database_path = args.db
    if args.no_audio:
        settings.audio.enabled = False

    return settings


@log_function_call
def show_logs(database_path: str, limit: int) -> None:
    """Print the most recent event log records, newest first."""
    with EventLogStore(database_path) as store:
        records = store.recent(limit)
    if not records:
        print("No events logged yet")
        return
    for record in records:
        print(format_record(record))


def initialize_camera(camera_index: int, width: int, height: int, fps: int):
    """Initialize camera capture."""
    print(f"Initializing camera (device: {camera_index})...")
    import platform

    # On Windows prefer DirectShow backend which is often more reliable
    if platform.system() == 'Windows':
        cap = cv2.VideoCapture(camera_index, cv2.CAP_DSHOW)
    else:
        cap = cv2.VideoCapture(camera_index)
    if not cap.isOpened():
        print(f"✗ Error: Could not open camera {camera_index}")
        return None

    cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    cap.set(cv2.CAP_PROP_FPS, fps)

    actual_width = cap.get(cv2.CAP_PROP_FRAME_WIDTH)
    actual_height = cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
    actual_fps = cap.get(cv2.CAP_PROP_FPS)

    print(f"✓ Camera initialized: {actual_width:.0f}x{actual_height:.0f} @ {actual_fps:.1f} FPS")
    return cap


def print_status(snapshot, frame_count: int, fps: float, verbose: bool = False):
    """Print status information."""
    if verbose:
        print(f"Frame {frame_count:4d} | FPS: {fps:5.1f} | {snapshot.status_text} | "
              f"Alert: {snapshot.alert_level.value} | {snapshot.shift_text} | {snapshot.stats_text}")
    elif frame_count % 30 == 0:
        print(f"{snapshot.status_text} | {snapshot.shift_text} | FPS: {fps:.1f}")


def print_session_summary(summary: dict) -> None:
    print("\n" + "=" * 60)
    print("SESSION SUMMARY")
    print("=" * 60)
    print(f"Duration: {summary['session_duration_ms'] / 1000:.1f} seconds")
    print(f"Focus: {summary['focus_percent']}%")
    print(f"Look-aways: {summary['look_away_count']}")
    print(f"Longest Focus: {summary['longest_focus']}")
    print(f"Frames: {summary['processed_frames']} processed, {summary['dropped_frames']} dropped")
    print("=" * 60)


def handle_command(engine: AttentionEngine, command: str) -> bool:
    """
    Apply one control key or headless command to the engine.

    Returns:
        False when the command asks to quit
    """
    if command == 'q':
        return False
    if command == ' ' and engine.phase is EnginePhase.IDLE:
        engine.start()
    elif command == 'r':
        engine.reset()
        print("Recalibrating...")
    elif command == 'a':
        result = engine.acknowledge_shift()
        if result.message:
            print(result.message)
    return True


def read_commands(stream, commands: "queue.Queue[str]") -> None:
    """Queue the first letter of every non-blank line until the stream ends."""
    for line in stream:
        text = line.strip().lower()
        if text:
            commands.put(text[0])


def start_command_reader(stream=None) -> "queue.Queue[str]":
    """Read headless commands from stdin on a daemon thread."""
    commands: "queue.Queue[str]" = queue.Queue()
    reader = threading.Thread(target=read_commands, args=(stream or sys.stdin, commands), daemon=True)
    reader.start()
    return commands


def main(argv=None):
    """Main function."""
    args = parse_arguments(argv)

    try:
        settings = build_settings(args)
    except ValueError as e:
        print(f"✗ {e}")
        sys.exit(2)

    if args.show_logs is not None:
        show_logs(settings.storage.database_path, args.show_logs or settings.storage.recent_limit)
        return

    set_console_level(logging.INFO if args.verbose else logging.ERROR)
    logger.log_system_info()

    print("=" * 60)
    print("ScreenEye Attention Monitor")
    print("=" * 60)
    print(f"Camera: {settings.camera.device_id}")
    print(f"Resolution: {settings.camera.width}x{settings.camera.height}")
    print(f"Calibration Window: {settings.calibration.duration_ms / 1000:.0f}s")
    print(f"Shift Duration: {settings.shift.duration_ms / 1000:.0f}s")
    print(f"Event Log: {settings.storage.database_path}")
    print("=" * 60)

    # Imported here so --show-logs works without the vision/audio stack
    from screeneye.core.face_signal_source import FaceSignalSource
    from screeneye.display.overlay import render
    from screeneye.display.tone_player import TonePlayer

    try:
        event_log = EventLogStore(settings.storage.database_path)
        tone_player = TonePlayer(settings.audio)
        engine = AttentionEngine(settings, event_sink=event_log.append, tone_sink=tone_player.play)
        source = FaceSignalSource(settings.detector)
    except (ValueError, RuntimeError, OSError) as e:
        logger.log_error_with_context(e, "component initialization")
        print(f"Failed to initialize components: {e}")
        sys.exit(1)
    print("✓ All components initialized successfully")

    cap = initialize_camera(settings.camera.device_id, settings.camera.width,
                            settings.camera.height, settings.camera.fps)
    if cap is None:
        print("Failed to initialize camera. Exiting.")
        event_log.close()
        tone_player.close()
        source.close()
        sys.exit(1)

    ticker = ShiftTicker(engine.tick, settings.shift.tick_interval_ms)
    ticker.start()

    frame_count = 0
    start_time = time.time()

    print("\n" + "=" * 60)
    print("Starting monitoring...")
    print("=" * 60)
    print("Controls:")
    print("  - Press SPACE to start calibration")
    print("  - Press 'a' to acknowledge a shift change")
    print("  - Press 'r' to recalibrate")
    print("  - Press 'q' to quit")
    print("=" * 60)
    print()

    commands = None
    shift_prompt_shown = False
    if args.no_display:
        commands = start_command_reader()
        engine.start()

    try:
        running = True
        while running:
            ret, frame = cap.read()
            if not ret:
                print("Error: Could not read frame")
                break

            frame_signal = source.process(frame)
            engine.submit_frame(frame_signal)

            frame_count += 1
            elapsed_time = time.time() - start_time
            fps = frame_count / elapsed_time if elapsed_time > 0 else 0

            now_ms = int(time.time() * 1000)
            snapshot = engine.snapshot(now_ms)
            if snapshot.phase is not EnginePhase.IDLE:
                print_status(snapshot, frame_count, fps, args.verbose)

            if commands is not None:
                if snapshot.shift_pending and not shift_prompt_shown:
                    print(f"{snapshot.shift_prompt} (type a + Enter to acknowledge)")
                shift_prompt_shown = snapshot.shift_pending
                while running and not commands.empty():
                    running = handle_command(engine, commands.get_nowait())

                # Headless mode: avoid busy-looping, throttle to target FPS
                if settings.camera.fps > 0:
                    time.sleep(1.0 / settings.camera.fps)
                continue

            cv2.imshow("ScreenEye", render(frame, snapshot, frame_signal, now_ms, fps))

            key = cv2.waitKey(1) & 0xFF
            if key != 0xFF:
                running = handle_command(engine, chr(key))

    except KeyboardInterrupt:
        print("\nMonitoring interrupted by user")
    finally:
        ticker.stop()
        summary = engine.session_summary()
        engine.close()
        cap.release()
        cv2.destroyAllWindows()
        source.close()
        tone_player.close()
        event_log.close()

        print_session_summary(summary)
        print("Monitoring ended")


if __name__ == "__main__":
    main()
