from __future__ import annotations

import argparse
import logging
import logging.handlers
import os
import signal
import sys
from pathlib import Path
from typing import Dict, List, Optional

import requests
from pydantic import ValidationError

from placekit.artifacts import SnapshotRecorder
from placekit.client import CanvasClient, TokenEndpoint
from placekit.common import ensure_dir
from placekit.config import AgentConfig, TargetSpec, env_base_url, env_map_dir, target_from_parts
from placekit.credentials import CredentialManager
from placekit.errors import AuthError, PatternFormatError
from placekit.models import Tier
from placekit.scheduler import BatchScheduler

EXIT_OK = 0
EXIT_OPERATOR = 2
EXIT_INTERRUPTED = 130

TARGET_FLAGS = {
    Tier.DEFENSIVE_PRIMARY: "defensive1",
    Tier.DEFENSIVE_SECONDARY: "defensive2",
    Tier.BUILD_1: "build1",
    Tier.BUILD_2: "build2",
    Tier.BUILD_3: "build3",
}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Keep target patterns painted on the shared canvas.")
    p.add_argument("--token", default=os.environ.get("PLACEKIT_TOKEN"))
    p.add_argument("--refresh-token", default=os.environ.get("PLACEKIT_REFRESH_TOKEN"))
    for tier, prefix in TARGET_FLAGS.items():
        required = tier == Tier.DEFENSIVE_PRIMARY
        p.add_argument(f"--{prefix}-x", type=int, required=required)
        p.add_argument(f"--{prefix}-y", type=int, required=required)
        p.add_argument(f"--{prefix}-pattern", required=required)
    p.add_argument("--base-url", default=env_base_url())
    p.add_argument("--map-dir", type=Path, default=env_map_dir())
    p.add_argument("--no-artifacts", action="store_true")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return p.parse_args(argv)


def build_config(args: argparse.Namespace) -> AgentConfig:
    targets: Dict[Tier, TargetSpec] = {}
    for tier, prefix in TARGET_FLAGS.items():
        spec = target_from_parts(
            prefix,
            getattr(args, f"{prefix}_x"),
            getattr(args, f"{prefix}_y"),
            getattr(args, f"{prefix}_pattern"),
        )
        if spec is not None:
            targets[tier] = spec
    return AgentConfig(
        access_token=args.token or "",
        refresh_token=args.refresh_token or "",
        base_url=args.base_url,
        map_dir=args.map_dir,
        write_artifacts=not args.no_artifacts,
        targets=targets,
    )


def setup_logging(log_dir: Path, level: str) -> logging.Logger:
    logger = logging.getLogger("placekit")
    logger.setLevel(getattr(logging, level))
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")

    handler = logging.handlers.RotatingFileHandler(
        ensure_dir(log_dir) / "agent.log", maxBytes=5_000_000, backupCount=3, encoding="utf-8"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)
    return logger


def _raise_interrupt(signum: int, frame: object) -> None:
    raise KeyboardInterrupt(f"signal {signum}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        config = build_config(args)
    except (ValueError, ValidationError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_OPERATOR

    logger = setup_logging(config.map_dir, args.log_level)
    logger.info("Starting placekit agent against %s", config.base_url)

    try:
        patterns = config.load_pattern_set()
    except PatternFormatError as exc:
        logger.error("%s; fix the pattern file and restart", exc)
        return EXIT_OPERATOR
    for target in patterns:
        logger.info(
            "Target %s: %s at %s (%d pixels)",
            target.tier.label,
            target.pattern.name,
            target.pattern.origin,
            len(target.pattern.pixels),
        )

    session = requests.Session()
    credentials = CredentialManager(
        config.access_token,
        config.refresh_token,
        exchange=TokenEndpoint(session, config.base_url),
    )
    client = CanvasClient(session, config.base_url, credentials)
    scheduler = BatchScheduler(
        client,
        patterns,
        snapshot_sink=SnapshotRecorder(config.map_dir) if config.write_artifacts else None,
        before_fetch=client.ensure_fresh_credentials,
    )

    signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        scheduler.run()
    except AuthError as exc:
        logger.error("%s; supply a fresh --token/--refresh-token pair", exc)
        return EXIT_OPERATOR
    except KeyboardInterrupt:
        logger.info("Interrupted during %s; stopping", scheduler.state.value)
        return EXIT_INTERRUPTED
    finally:
        session.close()
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
