#!/usr/bin/env python3
"""
Stream Probe
============

Standalone script to check the frame pipeline against a live source.

This script:
    1. Starts ffmpeg on the given stream key, URL or file
    2. Runs the full pipeline for a configurable duration
    3. Logs pipeline stats every few seconds
    4. Reports a final summary

Frames are acknowledged locally unless --mqtt is given, in which case they
are published to the configured broker.

Prerequisites:
    - ffmpeg on PATH (or FFMPEG_PATH set)
    - The compositor publishing to the configured RTMP server

Usage:
    python scripts/stream_probe.py --duration 60
    python scripts/stream_probe.py --source /tmp/sample.mp4 --mode dual
    python scripts/stream_probe.py --mqtt --brightness 30
"""

import argparse
import asyncio
import logging
import sys
import time

from pixel_streamer.config import ConfigurationError, apply_overrides, load_config
from pixel_streamer.services import build_services


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_probe(args: argparse.Namespace) -> dict:
    """
    Run the probe.
    
    Returns:
        Final metrics dict
    """
    settings = load_config(args.config)
    overrides = {"mqtt": {"dry_run": not args.mqtt}}
    if args.mode:
        overrides["display"] = {"mode": args.mode}
    if args.brightness is not None:
        overrides.setdefault("display", {})["brightness"] = args.brightness
    settings = apply_overrides(settings, overrides)
    
    services = build_services(settings)
    source = args.source or settings.stream.stream_key
    
    logger.info("=" * 60)
    logger.info("Stream Probe")
    logger.info("=" * 60)
    logger.info(f"Source: {source}")
    logger.info(f"Resolution: {settings.display.width}x{settings.display.height}")
    logger.info(f"Mode: {settings.display.mode.value}")
    logger.info(f"Brightness: {settings.display.brightness}%")
    logger.info(f"Transport: {'mqtt ' + settings.mqtt.broker if args.mqtt else 'dry-run'}")
    logger.info(f"Duration: {args.duration} seconds")
    logger.info("=" * 60)
    
    services.transport.connect()
    await services.supervisor.start(source)
    
    start_time = time.time()
    last_report_time = start_time
    last_frame_count = 0
    
    try:
        while services.supervisor.is_processing:
            elapsed = time.time() - start_time
            if elapsed >= args.duration:
                logger.info(f"Probe duration ({args.duration}s) reached")
                break
            
            time_since_report = time.time() - last_report_time
            if time_since_report >= args.report_interval:
                status = services.supervisor.get_status()
                publisher = services.gateway.stats()
                frames_since_last = status.frames_processed - last_frame_count
                fps = frames_since_last / time_since_report if time_since_report > 0 else 0
                
                logger.info("-" * 40)
                logger.info(f"Progress Report (elapsed: {elapsed:.0f}s)")
                logger.info(f"  State: {status.state}")
                logger.info(f"  Frames processed: {status.frames_processed}")
                logger.info(f"  Current FPS: {fps:.1f}")
                logger.info(f"  Buffered bytes: {status.buffered_bytes}/{status.expected_frame_size}")
                logger.info(f"  Published: {publisher.published}")
                logger.info(f"  Failed: {publisher.failed}")
                logger.info(f"  Outstanding: {publisher.outstanding}")
                
                last_report_time = time.time()
                last_frame_count = status.frames_processed
            
            await asyncio.sleep(0.5)
    finally:
        await services.supervisor.stop()
        services.transport.disconnect()
    
    total_time = time.time() - start_time
    frames = services.pipeline.frames_processed
    publisher = services.gateway.stats()
    avg_fps = frames / total_time if total_time > 0 else 0
    
    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.1f} seconds")
    logger.info(f"Frames processed: {frames}")
    logger.info(f"Average FPS: {avg_fps:.1f}")
    logger.info(f"Published: {publisher.published}")
    logger.info(f"Publish failures: {publisher.failed}")
    logger.info(f"Publish drops: {publisher.dropped}")
    if services.supervisor.last_error:
        logger.info(f"Last error: {services.supervisor.last_error}")
    logger.info("=" * 60)
    
    if frames > 0:
        logger.info("PROBE PASSED - frames flowed through the pipeline")
    else:
        logger.error("PROBE FAILED - no frames processed")
    
    return {
        "duration": total_time,
        "frames_processed": frames,
        "avg_fps": avg_fps,
        "published": publisher.published,
        "failed": publisher.failed,
        "dropped": publisher.dropped,
    }


def main():
    parser = argparse.ArgumentParser(
        description="Run the pixel streamer pipeline against a source and report throughput"
    )
    parser.add_argument(
        "--source",
        type=str,
        default=None,
        help="Stream key, URL or file (default: configured stream key)",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    parser.add_argument(
        "--duration",
        type=int,
        default=60,
        help="Probe duration in seconds (default: 60)",
    )
    parser.add_argument(
        "--report-interval",
        type=int,
        default=5,
        help="Seconds between progress reports (default: 5)",
    )
    parser.add_argument("--mode", choices=["single", "dual"], default=None)
    parser.add_argument("--brightness", type=int, default=None)
    parser.add_argument(
        "--mqtt",
        action="store_true",
        help="Publish to the configured MQTT broker instead of a dry run",
    )
    
    args = parser.parse_args()
    
    try:
        result = asyncio.run(run_probe(args))
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(2)
    
    sys.exit(0 if result["frames_processed"] > 0 else 1)


if __name__ == "__main__":
    main()
