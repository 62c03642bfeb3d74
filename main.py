"""CLI entrypoint: generate a research roadmap for one topic."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from config import RoadmapConfig
from roadmap import RoadmapPipeline


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Generate a research roadmap from a free-text topic")
    parser.add_argument("topic", help="Research topic or thesis idea")
    parser.add_argument("--output", type=Path, default=None, help="Write the roadmap JSON to this file")
    parser.add_argument(
        "--concurrent",
        action="store_true",
        help="Run the ranking, gap analysis and pros/cons stages in parallel",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def run(topic: str, config: RoadmapConfig, output: Path | None) -> int:
    """Run one pipeline cycle and emit the result."""
    result = RoadmapPipeline(config).generate(topic)
    payload = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)

    if output is not None:
        output.write_text(payload + "\n", encoding="utf-8")
        logging.info("Wrote roadmap to %s", output)
    else:
        print(payload)

    if result.error:
        logging.warning("Roadmap completed with errors: %s", result.error)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute the pipeline."""
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    if not args.topic.strip():
        logging.error("Topic must be a non-empty string")
        return 2

    config = RoadmapConfig.from_env()
    if args.concurrent:
        config = replace(config, concurrent_stages=True)
    return run(args.topic, config, args.output)


if __name__ == "__main__":
    sys.exit(main())
