"""Command line entry point: `mongodb-source seed | verify | generate`."""
from __future__ import annotations

import argparse
import logging
import os

from pymongo.errors import PyMongoError

from .config import GeneratorSettings, MongoSettings
from .connect_db import get_client
from .errors import ConfigError, SeedError
from .generator import run_generator
from .seeder import seed_environment
from .verify import verify_environment

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def cmd_seed(args) -> int:
    settings = MongoSettings.from_env(idempotent=True if args.idempotent else None)
    report = seed_environment(settings)
    counts = ", ".join(f"{name}={n}" for name, n in report.inserted.items())
    print(f"✅ Seeded '{settings.db_name}' on replica set '{settings.replica_set_name}' ({counts})")
    if report.skipped:
        print(f"   skipped: {', '.join(report.skipped)}")
    return EXIT_OK


def cmd_verify(args) -> int:
    settings = MongoSettings.from_env()
    client = get_client(settings)
    try:
        report = verify_environment(client, settings, exact=not args.allow_extra)
    finally:
        client.close()
    if report.ok:
        print(f"✅ '{settings.db_name}' looks seeded")
        return EXIT_OK
    print(f"❌ {len(report.problems)} problem(s) found:")
    for problem in report.problems:
        print(f"   - {problem}")
    return EXIT_FAILED


def cmd_generate(args) -> int:
    settings = MongoSettings.from_env()
    gen_settings = GeneratorSettings.from_env(
        duration_seconds=args.duration,
        target_cps=args.target_cps,
        concurrency=args.concurrency,
    )
    client = get_client(settings)
    try:
        report = run_generator(client[settings.db_name], gen_settings)
    finally:
        client.close()
    print(
        f"✅ {report.total_operations} changes in {report.duration_seconds:.1f}s "
        f"({report.actual_cps:.2f} cps, {report.efficiency:.2f}% of target)"
    )
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mongodb-source",
        description="Bootstrap and exercise the MongoDB source of the CDC demo",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO or $LOG_LEVEL)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="Initiate the replica set, create the admin user and sample data")
    seed.add_argument(
        "--idempotent",
        action="store_true",
        help="Skip steps whose result already exists instead of failing",
    )
    seed.set_defaults(func=cmd_seed)

    verify = sub.add_parser("verify", help="Check the seeded replica set, user and documents")
    verify.add_argument(
        "--allow-extra",
        action="store_true",
        help="Tolerate documents beyond the samples",
    )
    verify.set_defaults(func=cmd_verify)

    generate = sub.add_parser("generate", help="Write a stream of inserts and updates")
    generate.add_argument("--duration", type=int, help="Seconds to run")
    generate.add_argument("--target-cps", type=int, help="Target changes per second")
    generate.add_argument("--concurrency", type=int, help="Number of worker threads")
    generate.set_defaults(func=cmd_generate)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except ConfigError as e:
        print(f"❌ Configuration error: {e}")
        return EXIT_CONFIG
    except SeedError as e:
        print(f"❌ Seeding failed after stage '{e.stage}': {e}")
        return EXIT_FAILED
    except PyMongoError as e:
        print(f"❌ MongoDB error: {e}")
        return EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
