#!/usr/bin/env python3
"""
Queue Admin — Operator commands for an offloading queue.

Usage:
    # Push a job (offloaded automatically when large):
    python scripts/queue_admin.py push SendInvoice --data '{"invoice_id": 42}'

    # Push a raw envelope from a file, delayed by 60s:
    python scripts/queue_admin.py push-raw payload.json --delay 60

    # Pop one job and print its resolved body (add --delete to acknowledge):
    python scripts/queue_admin.py pop --delete

    # Queue depth:
    python scripts/queue_admin.py depth

    # Purge the queue and every offloaded object under its prefix:
    python scripts/queue_admin.py clear --yes

All commands take --config (defaults to $OFFLOAD_QUEUE_CONFIG or
config/settings.yaml) and --queue (defaults to queue.name).
"""
import asyncio
import json
import logging
import os
import sys
import argparse

# Ensure app root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import structlog


def configure_logging(level: str):
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
    )


async def run_command(args) -> int:
    from config.settings import load_settings
    from job_queue.queue_factory import create_disk_queue

    settings = load_settings(args.config)
    configure_logging(args.log_level or settings.log_level)
    queue = create_disk_queue(settings)

    try:
        if args.command == "push":
            data = json.loads(args.data) if args.data else None
            message_id = await queue.later(args.delay, args.job, data, args.queue)
            print(message_id)

        elif args.command == "push-raw":
            with open(args.file) as f:
                payload = f.read()
            message_id = await queue.later_raw(args.delay, payload, args.queue)
            print(message_id)

        elif args.command == "pop":
            job = await queue.pop(args.queue)
            if job is None:
                print("(queue empty)")
                return 1
            print(await job.get_raw_body())
            if args.delete:
                error = await job.delete()
                if error is not None:
                    print(f"warning: blob cleanup failed: {error}", file=sys.stderr)
            else:
                await job.release()

        elif args.command == "depth":
            depth = await queue.depth(args.queue)
            print(json.dumps({**depth.model_dump(), "total": depth.total}))

        elif args.command == "clear":
            if not args.yes:
                print("Refusing to clear without --yes", file=sys.stderr)
                return 2
            result = await queue.clear(args.queue)
            print(result.model_dump_json())
            if not result.blobs_cleared:
                return 1
    finally:
        await queue.transport.close()

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Offloading queue admin")
    parser.add_argument("--config", default=None, help="Path to settings.yaml")
    parser.add_argument("--queue", default=None, help="Queue name (default: queue.name)")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    push = sub.add_parser("push", help="Push a job envelope")
    push.add_argument("job")
    push.add_argument("--data", default=None, help="JSON data for the job")
    push.add_argument("--delay", type=int, default=0)

    push_raw = sub.add_parser("push-raw", help="Push a file's contents verbatim")
    push_raw.add_argument("file")
    push_raw.add_argument("--delay", type=int, default=0)

    pop = sub.add_parser("pop", help="Pop one job and print its resolved body")
    pop.add_argument("--delete", action="store_true", help="Acknowledge (delete) after printing")

    sub.add_parser("depth", help="Show queue depth")

    clear = sub.add_parser("clear", help="Purge the queue and its offloaded objects")
    clear.add_argument("--yes", action="store_true")

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(run_command(args))


if __name__ == "__main__":
    sys.exit(main())
