"""Command-line entry point for ScamScan."""

import argparse
import asyncio
import json
import logging
import sys

from .config import load_config, validate_config
from .errors import InvalidInputError
from .pipeline.combiner import AggregateResult
from .pipeline.engine import RiskEngine

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scamscan",
        description="Score a URL or blockchain address for scam risk.",
    )
    parser.add_argument("value", help="URL, domain or blockchain address to check")
    parser.add_argument(
        "--type",
        dest="kind",
        choices=["auto", "url", "domain", "wallet", "contract", "ip"],
        help="Treat the value as this type (default: auto, detect from the value)",
    )
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    return parser


def _print_summary(result: AggregateResult) -> None:
    print(f"{result.input} [{result.kind.value}]")
    print(f"Verdict: {result.verdict.value} (risk score {result.risk_score}/100)")
    if result.whitelisted_domain:
        print(f"Whitelisted domain: {result.whitelisted_domain}")
    for warning in result.warnings:
        print(f"  - {warning}")


async def run_check(value: str, kind: str | None, as_json: bool) -> int:
    """Run one check and print it. Returns the process exit code."""
    config = load_config()

    validation_errors = validate_config(config)
    if validation_errors:
        for err in validation_errors:
            logger.error(err)
        return 1

    async with RiskEngine(config) as engine:
        try:
            result = await engine.check(value, kind)
        except InvalidInputError as e:
            print(f"error: {e}", file=sys.stderr)
            return 2

    if as_json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_summary(result)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr),
        ],
    )
    try:
        return asyncio.run(run_check(args.value, args.kind, args.json))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
