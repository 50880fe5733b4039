"""
Command-line entry point: sample a video file and run object detection on it.

Frames are taken at a fixed interval, letterboxed to a square input, sent one
at a time to an isolated inference worker, and the detections are logged and
optionally written as JSON lines.

Usage:
    python src/main.py --config config/config.yaml --video clip.mp4

Arguments:
    --config: Path to configuration file
    --video: Video file to process
    --interval: Seconds between sampled frames (overrides sampling.interval_seconds)
    --output: JSON lines file for results (overrides output.results_path)
"""

import argparse
import logging
import os
import sys
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Dict, Optional, Tuple

import yaml

from errors import ConfigurationError, ModelInitError, PipelineError
from inference.channel import create_channel_from_config
from models.config import Config
from models.state import RunState
from observation.opencv_source import OpenCVSourceConfig, OpenCVVideoSource
from ops.logging import setup_logging
from pipeline.engine import create_engine_from_config
from pipeline.sinks import CompositeSink, JsonLinesSink, LoggingSink

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_TRANSPORTS = ("process", "thread")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)

    Raises:
        ConfigurationError: If a config file exists but cannot be parsed.
    """
    config_dir = os.path.dirname(config_path)
    base_path = os.path.join(config_dir, "default.yaml")
    local_overrides_path = os.path.join(config_dir, "config.yaml")

    try:
        merged: Dict[str, Any] = _read_yaml(base_path) if os.path.exists(base_path) else {}
        if os.path.exists(local_overrides_path):
            merged = _deep_merge(merged, _read_yaml(local_overrides_path))
        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            merged = _deep_merge(merged, _read_yaml(config_path))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load configuration: {e}") from e

    return merged


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['model', 'sampling', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    model = config.get('model') or {}
    if not isinstance(model.get('path'), str) or not model['path']:
        return False, "model.path must be a non-empty string"
    class_names = model.get('class_names')
    if class_names is not None:
        if not isinstance(class_names, dict):
            return False, "model.class_names must be a mapping of class id to label"
        try:
            [int(k) for k in class_names]
        except (TypeError, ValueError):
            return False, "model.class_names keys must be integer class ids"

    sampling = config.get('sampling') or {}
    interval = sampling.get('interval_seconds')
    if not isinstance(interval, (int, float)) or isinstance(interval, bool) or interval <= 0:
        return False, "sampling.interval_seconds must be a positive number"
    output_size = sampling.get('output_size')
    if not isinstance(output_size, int) or isinstance(output_size, bool) or output_size <= 0:
        return False, "sampling.output_size must be a positive integer"
    seek_timeout = sampling.get('seek_timeout')
    if seek_timeout is not None and (not isinstance(seek_timeout, (int, float)) or seek_timeout <= 0):
        return False, "sampling.seek_timeout must be a positive number"

    inference = config.get('inference') or {}
    if inference.get('transport', 'process') not in VALID_TRANSPORTS:
        return False, f"inference.transport must be one of {VALID_TRANSPORTS}"
    for key in ('init_timeout', 'reply_timeout'):
        value = inference.get(key)
        if value is not None and (not isinstance(value, (int, float)) or value <= 0):
            return False, f"inference.{key} must be a positive number"

    if str(config['log_level']).upper() not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of {VALID_LOG_LEVELS}"

    return True, None


def build_sink(config: Dict[str, Any], output_path: Optional[str] = None) -> CompositeSink:
    """Log every result, and also write JSON lines when an output path is set."""
    settings = Config.from_dict(config)
    sinks = [LoggingSink(settings.model.class_names)]
    results_path = output_path or settings.output.results_path
    if results_path:
        sinks.append(JsonLinesSink(results_path))
    return CompositeSink(sinks)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Sample a video and run object detection on it')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--video', type=str, required=True,
                        help='Video file to process')
    parser.add_argument('--interval', type=float, default=None,
                        help='Seconds between sampled frames')
    parser.add_argument('--output', type=str, default=None,
                        help='JSON lines file for per-frame results')
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(e, file=sys.stderr)
        return 1
    if args.interval is not None:
        config.setdefault('sampling', {})['interval_seconds'] = args.interval

    is_valid, error = validate_config(config)
    if not is_valid:
        print(f"Invalid configuration: {error}", file=sys.stderr)
        return 1

    setup_logging(config['log_path'], config['log_level'])
    logging.info("Frame inference pipeline starting")

    settings = Config.from_dict(config)
    init_timeout = settings.inference.init_timeout
    channel = create_channel_from_config(config)
    try:
        try:
            channel.initialize().result(timeout=init_timeout)
        except ModelInitError as e:
            logging.error(f"Failed to load object detection model: {e.reason}")
            return 1
        except FutureTimeoutError:
            logging.error(f"Inference worker did not initialize within {init_timeout}s")
            return 1

        engine = create_engine_from_config(config, channel, build_sink(config, args.output))
        with OpenCVVideoSource(OpenCVSourceConfig.from_path(args.video)) as source:
            logging.info(f"Video info: {source.get_video_info()}")
            future = engine.start(
                source, settings.sampling.interval_seconds, settings.sampling.output_size
            )
            try:
                summary = future.result()
            except KeyboardInterrupt:
                logging.info("Interrupted by user")
                engine.cancel()
                summary = future.result()
        engine.close()
    except (PipelineError, RuntimeError) as e:
        logging.error(f"Error processing video: {e}")
        return 1
    finally:
        channel.close()

    if summary.state == RunState.FAILED:
        logging.error(f"Error processing video: {summary.error}")
    return 0 if summary.state == RunState.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())
