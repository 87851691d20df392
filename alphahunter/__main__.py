import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from alphahunter.config import ConfigManager
from alphahunter.orchestrator import build_orchestrator
from alphahunter.storage import DatabaseManager
from alphahunter.utils.errors import ConfigError, InvalidInputError

DEFAULT_CONFIG_PATH = "alphahunter_config.json"


def setup_logging(log_level):
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s'
    )


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _load_markets(path: str) -> List[Dict[str, Any]]:
    """Read a JSON list of market quotes (or {"markets": [...]})"""
    raw = json.loads(Path(path).read_text())
    if isinstance(raw, dict):
        raw = raw.get("markets", [])
    if not isinstance(raw, list):
        raise InvalidInputError("markets file must hold a JSON list", field="markets", value=path)
    return raw


def _build_safe_config_view(cfg: ConfigManager) -> Dict[str, Any]:
    return {
        "news": {
            "enabled": cfg.news_enabled,
            "max_articles": cfg.news.max_articles,
            "lookback_days": cfg.news.lookback_days,
        },
        "factors": {
            "provider": cfg.factors.provider,
            "max_factors": cfg.factors.max_factors,
            "max_factor_contribution": cfg.factors.max_factor_contribution,
            "max_total_contribution": cfg.factors.max_total_contribution,
        },
        "platforms": {
            "polymarket": cfg.polymarket_enabled,
            "kalshi": cfg.kalshi_enabled,
            "manifold": cfg.manifold_enabled,
        },
        "scoring": {
            "hold_edge": cfg.scoring.hold_edge,
            "strong_edge": cfg.scoring.strong_edge,
            "strong_confidence": cfg.scoring.strong_confidence,
            "min_confidence": cfg.scoring.min_confidence,
            "kelly_multiplier": cfg.scoring.kelly_multiplier,
        },
        "scan": {
            "max_workers": cfg.scan.max_workers,
            "source_timeout_seconds": cfg.scan.source_timeout_seconds,
            "deadline_seconds": cfg.scan.deadline_seconds,
            "default_min_edge": cfg.scan.default_min_edge,
        },
        "database": {"path": cfg.database.path},
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Alpha detection and probability estimation CLI")
    parser.add_argument('--config', type=str, default=DEFAULT_CONFIG_PATH, help='Path to config file')
    parser.add_argument('--log-level', type=str, default='INFO', help='Logging level')
    parser.add_argument('--db', type=str, help='Override database path')
    parser.add_argument('--show-config', action='store_true', help='Print effective non-secret config and exit')

    sub = parser.add_subparsers(dest='command')

    scan = sub.add_parser('scan', help='Scan markets for mispriced opportunities')
    scan.add_argument('--markets', type=str, help='JSON file of market quotes (skips platform fetch)')
    scan.add_argument('--min-edge', type=float, help='Minimum |edge| to persist (0-1)')
    scan.add_argument('--category', type=str, help='Only fetch markets in this category')
    scan.add_argument('--limit', type=int, help='Max markets per platform')

    predict = sub.add_parser('predict', help='Estimate the probability of a free-text question')
    predict.add_argument('question', type=str, help='Question to estimate')

    opportunities = sub.add_parser('opportunities', help='List active opportunities by edge')
    opportunities.add_argument('--platform', type=str, help='Only this platform')
    opportunities.add_argument('--min-edge', type=float, default=0.0, help='Minimum |edge|')
    opportunities.add_argument('--limit', type=int, default=50, help='Max rows')

    close = sub.add_parser('close', help='Close the active opportunity for a market')
    close.add_argument('market_key', type=str, help='platform:market_id')

    sub.add_parser('cleanup', help='Close active opportunities whose market has passed its resolution date')

    return parser


async def run_command(args: argparse.Namespace, cfg: ConfigManager) -> int:
    """Execute one CLI command; returns the process exit code"""
    db = DatabaseManager(args.db or cfg.database.path)
    await db.initialize()

    if args.command == 'opportunities':
        rows = await db.get_active_opportunities(
            platform=args.platform, min_abs_edge=args.min_edge, limit=args.limit
        )
        _print_json([o.to_dict() for o in rows])
        return 0

    if args.command == 'close':
        closed = await db.close_opportunity(args.market_key)
        _print_json({"market_key": args.market_key, "closed": closed})
        return 0 if closed else 1

    if args.command == 'cleanup':
        expired = await db.expire_opportunities()
        _print_json({"expired_opportunities": len(expired), "market_keys": expired})
        return 0

    orchestrator = build_orchestrator(cfg, db)

    if args.command == 'predict':
        result = await orchestrator.predict(args.question)
        _print_json(result.to_dict())
        return 0

    markets = _load_markets(args.markets) if args.markets else None
    result = await orchestrator.scan(
        markets=markets, min_edge=args.min_edge, category=args.category, limit=args.limit
    )
    _print_json(result.to_dict())
    return 0


async def main():
    parser = build_parser()
    args = parser.parse_args()

    setup_logging(args.log_level)
    logger = logging.getLogger("alphahunter")

    try:
        cfg = ConfigManager(args.config)
    except (ConfigError, json.JSONDecodeError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    if args.show_config:
        _print_json(_build_safe_config_view(cfg))
        return

    if not args.command:
        parser.print_help()
        sys.exit(2)

    cfg.log_config_summary()

    try:
        code = await run_command(args, cfg)
    except InvalidInputError as e:
        logger.error(f"Invalid input: {e}")
        sys.exit(2)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    if code:
        sys.exit(code)


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
