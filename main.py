#!/usr/bin/env python3
"""Main entry point for the Intonation Lab command-line host."""

import os
import sys
import json
import signal
import argparse
import dataclasses
from pathlib import Path
from typing import Optional, Tuple

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

import numpy as np
import soundfile as sf

from intonation_lab.engine.analysis_engine import AnalysisEngine
from intonation_lab.engine.config import EngineConfiguration
from intonation_lab.engine.offline import stream_signal
from intonation_lab.engine.publisher import NoteEventMessage
from intonation_lab.exceptions import AudioSourceError, IntonationLabError
from intonation_lab.utils.config_loader import load_config
from intonation_lab.utils.logging_config import setup_logging, LogContext, log_execution_time

import logging
logger = logging.getLogger(__name__)


def load_audio(path: str, target_sr: Optional[int] = None) -> Tuple[np.ndarray, int]:
    """Read an audio file as mono float32, optionally resampling.

    Raises:
        AudioSourceError: If the file cannot be read
    """
    try:
        audio, sample_rate = sf.read(path, dtype='float32', always_2d=True)
    except (RuntimeError, OSError) as e:
        raise AudioSourceError(f"Cannot read audio file {path}: {e}") from e

    audio = audio.mean(axis=1)

    if target_sr and target_sr != sample_rate:
        import librosa
        logger.info(f"Resampling from {sample_rate}Hz to {target_sr}Hz")
        audio = librosa.resample(audio, orig_sr=sample_rate, target_sr=target_sr)
        sample_rate = target_sr

    return audio.astype(np.float32), int(sample_rate)


def note_event_to_json(event) -> str:
    data = dataclasses.asdict(event)
    data['label'] = event.label
    data['interval_name'] = event.interval_name
    return json.dumps(data)


@log_execution_time("Offline analysis")
def analyze(args, config: dict, engine_config: EngineConfiguration) -> int:
    """Stream a file through the engine, printing closed notes as JSON lines."""
    audio, sample_rate = load_audio(args.input, args.sample_rate)

    engine_config = engine_config.replace(sample_rate=sample_rate)
    engine = AnalysisEngine(engine_config)
    target_fps = args.fps or config['driver']['target_fps']

    def print_note(message):
        if isinstance(message, NoteEventMessage):
            print(note_event_to_json(message.event), flush=True)

    subscription = engine.subscribe(print_note)
    engine.start()
    try:
        # Trailing silence closes a note still sounding at the end of the file
        tail = np.zeros(engine_config.fft_size * 2, dtype=np.float32)
        cycles = stream_signal(engine, np.concatenate([audio, tail]), sample_rate,
                               target_fps=target_fps)
        logger.info(
            f"Analyzed {len(audio) / sample_rate:.2f}s of audio",
            extra={"cycles": cycles, "note_events": len(engine.note_events)}
        )

        if args.export:
            start_ms, end_ms, out_path = args.export
            wav_bytes = engine.export_loop(float(start_ms), float(end_ms))
            if wav_bytes is None:
                logger.error(f"No captured audio between {start_ms}ms and {end_ms}ms")
                return 1
            Path(out_path).parent.mkdir(parents=True, exist_ok=True)
            Path(out_path).write_bytes(wav_bytes)
            logger.info(f"Exported loop to {out_path} ({len(wav_bytes)} bytes)")
    finally:
        subscription.unsubscribe()
        engine.stop()

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Intonation Lab pitch and harmonic analysis')
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to configuration file (YAML or JSON)'
    )
    parser.add_argument(
        '--log-level',
        type=str,
        default=os.getenv('LOG_LEVEL', 'INFO'),
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Set logging level'
    )
    parser.add_argument(
        '--log-format',
        type=str,
        default=os.getenv('LOG_FORMAT', 'text'),
        choices=['json', 'text'],
        help='Set logging format'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)
    analyze_parser = subparsers.add_parser('analyze', help='Analyze an audio file')
    analyze_parser.add_argument('input', type=str, help='Input audio file')
    analyze_parser.add_argument(
        '--fps',
        type=float,
        default=None,
        help='Analysis cycles per second (default: driver.target_fps)'
    )
    analyze_parser.add_argument(
        '--sample-rate',
        type=int,
        default=None,
        help='Resample the input to this rate before analysis'
    )
    analyze_parser.add_argument(
        '--export',
        nargs=3,
        metavar=('START_MS', 'END_MS', 'OUT_WAV'),
        default=None,
        help='Write captured audio between two timestamps to a WAV file'
    )
    return parser


def main(argv=None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)

    # Update environment variables for logging config
    os.environ['LOG_LEVEL'] = args.log_level
    os.environ['LOG_FORMAT'] = args.log_format

    try:
        config = load_config(args.config)
        engine_config = EngineConfiguration.from_dict(config)
    except ValueError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        return 2

    setup_logging(config['logging'])

    # Setup graceful shutdown
    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    try:
        with LogContext(command=args.command, input=args.input):
            return analyze(args, config, engine_config)
    except IntonationLabError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Shutdown initiated by user")
        return 130


if __name__ == '__main__':
    sys.exit(main())
