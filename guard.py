"""
PUMP GUARD: command line runner

  python guard.py score <mint> [--chain sol] [--fast-only | --deep-only]
  python guard.py holders <mint> [--reset]

Reads SOLANA_RPC_URL / HELIUS_API_KEY / PG_* from the environment.
"""

import argparse
import asyncio
import json
import logging
import sys

import httpx

from pumpguard import GuardConfig, InvalidSubjectError, RiskEngine, TTLCache

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S"
)
log = logging.getLogger("pumpguard")

# Hide httpx request logs that expose the Helius API key in URLs
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def dump(obj):
    print(json.dumps(obj, indent=2, default=str))


async def run_score(engine: RiskEngine, args) -> int:
    if args.fast_only:
        dump((await engine.fast(args.mint)).to_dict())
    elif args.deep_only:
        dump((await engine.deep(args.mint)).to_dict())
    else:
        dump((await engine.evaluate(args.chain, args.mint)).to_dict())
    return 0


async def run_holders(engine: RiskEngine, args) -> int:
    if args.reset:
        dump(engine.holders.reset(args.mint))
        return 0

    report = await engine.holders.start(args.mint)
    dump(report)
    while report["status"] == "running":
        report = await engine.holders.step(args.mint)
        dump(report)
    return 0 if report["status"] == "done" else 1


async def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Token risk scoring")
    sub = p.add_subparsers(dest="command", required=True)

    score = sub.add_parser("score", help="Score a token")
    score.add_argument("mint")
    score.add_argument("--chain", default="sol", choices=["sol", "eth", "bnb"])
    only = score.add_mutually_exclusive_group()
    only.add_argument("--fast-only", action="store_true", help="Fast detectors only")
    only.add_argument("--deep-only", action="store_true", help="Liquidity and tx-pattern detectors only")

    holders = sub.add_parser("holders", help="Count holders page by page")
    holders.add_argument("mint")
    holders.add_argument("--reset", action="store_true", help="Drop the running job")

    args = p.parse_args(argv)

    config = GuardConfig.from_env()
    log.info(f"[Main] helius={'yes' if config.premium else 'no'} "
             f"call_timeout={config.call_timeout}s deep_timeout={config.deep_timeout}s")

    async with httpx.AsyncClient(timeout=config.call_timeout) as session:
        engine = RiskEngine(session, config=config, cache=TTLCache())
        try:
            if args.command == "score":
                return await run_score(engine, args)
            return await run_holders(engine, args)
        except InvalidSubjectError as e:
            log.error(f"[Main] {e}")
            return 2


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        log.info("[Main] Interrupted")
    except Exception as e:
        log.critical(f"[Main] Fatal: {e}"); raise
