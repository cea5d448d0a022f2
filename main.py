# -- coding: utf-8 --

import argparse
import logging
import os
import time

from core.config import ConfigError, load_config, validate_config
from core.runtime import build_runtime_from_loaded_config


def parse_args():
    p = argparse.ArgumentParser(
        description="DropCam optical-trigger capture service (config-driven)",
    )
    p.add_argument(
        "--config-dir", default="config", help="Directory containing main_*.yaml"
    )
    p.add_argument("--verbose", action="store_true", help="Debug log")
    p.add_argument(
        "--log-level", default="", help="Override log level (debug/info/warning/error)"
    )
    return p.parse_args()


def setup_logging(verbose: bool, log_level: str = ""):
    if verbose:
        level = logging.DEBUG
    else:
        level_map = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "warn": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL,
        }
        level = level_map.get(str(log_level or "").strip().lower(), logging.INFO)
    # Use UTC for all %(asctime)s timestamps in logs.
    logging.Formatter.converter = time.gmtime
    logging.basicConfig(
        level=level, format="%(asctime)sZ [%(levelname)s] %(message)s", force=True
    )


def main():
    args = parse_args()
    setup_logging(args.verbose, args.log_level)
    try:
        cfg = load_config(args.config_dir)
        validate_config(cfg)
    except ConfigError as e:
        logging.error("Config load failed: %s", e)
        raise SystemExit(1)
    # Config-driven log level (unless overridden by CLI).
    if not args.verbose and not args.log_level:
        setup_logging(args.verbose, cfg.runtime.log_level)

    os.makedirs(cfg.runtime.save_dir, exist_ok=True)
    try:
        runtime = build_runtime_from_loaded_config(cfg)
    except (ConfigError, ValueError) as e:
        logging.error("Config invalid: %s", e)
        raise SystemExit(1) from e

    logging.info(
        "Starting: source=%s recorder=%s mode=%s runtime=%s",
        cfg.camera.type,
        cfg.recorder.type,
        cfg.runtime.mode,
        f"{cfg.runtime.max_runtime_s}s" if cfg.runtime.max_runtime_s else "unlimited",
    )
    logging.info("Physics: %s", runtime.controller.physics_info())
    logging.info("Config file: %s", cfg.paths.get("main"))

    try:
        runtime.start()
        runtime.run(
            runtime_limit_s=cfg.runtime.max_runtime_s
            if cfg.runtime.max_runtime_s > 0
            else None
        )
        for artifact in runtime.completed_captures:
            logging.info("Captured: %s", artifact)
        logging.info("Done")
    except KeyboardInterrupt:
        logging.info("Service STOPPED by user (Ctrl+C)")
        runtime.stop()
    except Exception:
        logging.exception("Error")
        raise


if __name__ == "__main__":
    main()
