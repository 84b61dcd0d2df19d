"""
hybridtrack Command Line Interface

Usage:
    hybridtrack <command> [options]

Commands:
    track       Track landmarks through a video using recorded detections
    smooth      Smooth a landmark CSV file with One Euro filters
    config      Write an example configuration file

Examples:
    hybridtrack track hand.mp4 -d detections.csv -o tracked.csv
    hybridtrack track hand.mp4 -d detections.csv --backend opencv -ki 4
    hybridtrack smooth tracked.csv --preset stable --fps 30
    hybridtrack config hybridtrack.json
"""

import argparse
import logging
import sys
from pathlib import Path

from hybridtrack import __version__


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='hybridtrack',
        description='Hybrid detector/optical-flow landmark tracking',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        '-V', '--version',
        action='version',
        version=f'hybridtrack {__version__}',
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Track command
    track_parser = subparsers.add_parser(
        'track',
        help='Track landmarks through a video',
    )
    track_parser.add_argument('input', help='Input video file')
    track_parser.add_argument(
        '-d', '--detections',
        required=True,
        help='Landmark CSV with the detector output per frame',
    )
    track_parser.add_argument(
        '-o', '--output',
        default=None,
        help='Output landmark CSV (default: <input>_landmarks.csv)',
    )
    track_parser.add_argument(
        '-c', '--config',
        default=None,
        help='JSON configuration file',
    )
    track_parser.add_argument(
        '--backend',
        choices=['numpy', 'opencv'],
        default=None,
        help='Optical flow backend (default: from config)',
    )
    track_parser.add_argument(
        '-ki', '--keyframe-interval',
        type=int,
        default=None,
        help='Frames between detector keyframes (default: 5)',
    )
    track_parser.add_argument(
        '--no-adaptive',
        action='store_true',
        help='Keep the keyframe interval fixed',
    )
    track_parser.add_argument(
        '--no-smooth',
        action='store_true',
        help='Write unsmoothed positions',
    )
    track_parser.add_argument(
        '--preset',
        default=None,
        help='Filter preset: default, stable, responsive',
    )
    track_parser.add_argument(
        '-fs', '--first-frame',
        type=int,
        default=1,
        help='First frame to process (default: 1)',
    )
    track_parser.add_argument(
        '-fe', '--frame-end',
        type=int,
        default=None,
        help='Last frame to process (default: end of video)',
    )
    track_parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Suppress progress output',
    )
    track_parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable debug logging',
    )

    # Smooth command
    smooth_parser = subparsers.add_parser(
        'smooth',
        help='Smooth a landmark CSV file',
    )
    smooth_parser.add_argument('input', help='Input landmark CSV')
    smooth_parser.add_argument(
        '-o', '--output',
        default=None,
        help='Output landmark CSV (default: <input>_smooth.csv)',
    )
    smooth_parser.add_argument(
        '--preset',
        default='default',
        help='Filter preset: default, stable, responsive (default: default)',
    )
    smooth_parser.add_argument(
        '--fps',
        type=float,
        default=None,
        help='Sampling rate of the input in Hz (default: from preset)',
    )
    smooth_parser.add_argument('--min-cutoff', type=float, default=None)
    smooth_parser.add_argument('--beta', type=float, default=None)
    smooth_parser.add_argument('--d-cutoff', type=float, default=None)

    # Config command
    config_parser = subparsers.add_parser(
        'config',
        help='Write an example configuration file',
    )
    config_parser.add_argument(
        'path',
        nargs='?',
        default='hybridtrack.json',
        help='Output path (default: hybridtrack.json)',
    )

    # Parse arguments
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        if args.command == 'track':
            return run_track(args)
        elif args.command == 'smooth':
            return run_smooth(args)
        elif args.command == 'config':
            return run_config(args)
    except (FileNotFoundError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


def _default_output(input_path: str, suffix: str) -> Path:
    path = Path(input_path)
    return path.with_name(f"{path.stem}_{suffix}.csv")


def run_track(args) -> int:
    """Run the hybrid tracker over a video."""
    from hybridtrack.core.config import (
        TrackerConfig, apply_env_overrides, get_filter_preset, load_config,
    )
    from hybridtrack.core.video import VideoReader
    from hybridtrack.filtering import LandmarkSmoother
    from hybridtrack.tracking import HybridScheduler, LandmarkCSVWriter, ReplayDetector

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )

    config = load_config(args.config) if args.config else TrackerConfig()
    apply_env_overrides(config)
    if args.backend:
        config.flow.backend = args.backend
    if args.keyframe_interval is not None:
        config.scheduler.keyframe_interval = args.keyframe_interval
    if args.no_adaptive:
        config.scheduler.adaptive_interval = False
    if args.no_smooth:
        config.smoothing_enabled = False
    if args.preset:
        config.filter = get_filter_preset(args.preset)
    config.validate()

    output = Path(args.output) if args.output else _default_output(args.input, "landmarks")
    print(f"Tracking landmarks in {args.input}")
    print(f"Using detections: {args.detections}")

    detector = ReplayDetector.from_csv(args.detections)
    scheduler = HybridScheduler.from_config(config)
    smoother = LandmarkSmoother(config.filter) if config.smoothing_enabled else None

    with VideoReader(args.input, args.first_frame, args.frame_end) as reader, \
            LandmarkCSVWriter(output, include_result=True) as writer:
        for frame_num, frame in reader:
            detector.set_frame(frame_num)
            result = scheduler.process_frame(
                frame, detector, timestamp=reader.timestamp(frame_num)
            )
            if smoother is not None:
                result = smoother.apply(result)
            writer.write(frame_num, result.points, result.method.value, result.error)

            if not args.quiet:
                print(
                    f"\rFrame {frame_num}: {result.method.value:<12} "
                    f"error {result.error:.4f}",
                    end='',
                )

    stats = scheduler.efficiency_stats()
    print("\nDone!")
    print(f"  Keyframes:        {stats['keyframes']}")
    print(f"  Tracking frames:  {stats['tracking_frames']}")
    print(f"  Forced keyframes: {stats['forced_keyframes']}")
    print(f"  Detector savings: {stats['cpu_savings']}")
    print(f"  Avg flow error:   {stats['avg_error']}")
    print(f"Wrote {output}")
    return 0


def run_smooth(args) -> int:
    """Smooth a landmark CSV file offline."""
    from hybridtrack.core.config import get_filter_preset
    from hybridtrack.filtering import LandmarkSmoother
    from hybridtrack.tracking import LandmarkCSVWriter, read_landmark_csv

    config = get_filter_preset(args.preset)
    if args.fps is not None:
        config.frequency = args.fps
    if args.min_cutoff is not None:
        config.min_cutoff = args.min_cutoff
    if args.beta is not None:
        config.beta = args.beta
    if args.d_cutoff is not None:
        config.d_cutoff = args.d_cutoff
    config.validate()

    data = read_landmark_csv(args.input)
    output = Path(args.output) if args.output else _default_output(args.input, "smooth")
    smoother = LandmarkSmoother(config)

    previous = None
    with LandmarkCSVWriter(output) as writer:
        for frame, points in data.items():
            # A gap in the recording means the subject was lost
            if previous is not None and frame != previous + 1:
                smoother.reset()
            writer.write(frame, smoother.smooth(points, timestamp=frame / config.frequency))
            previous = frame

    print(f"Smoothed {len(data)} frames from {args.input}")
    print(f"Wrote {output}")
    return 0


def run_config(args) -> int:
    """Write an example configuration file."""
    from hybridtrack.core.config import create_example_config

    create_example_config(args.path)
    print(f"Created example configuration: {args.path}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
