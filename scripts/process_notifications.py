#!/usr/bin/env python3
"""
Notification Processor — Run queued notification jobs from the command line.

Usage:
    python scripts/process_notifications.py                 # One batch, print report
    python scripts/process_notifications.py --loop          # Every 60s until Ctrl-C
    python scripts/process_notifications.py --loop --interval 15
    python scripts/process_notifications.py --status <job_id>
"""
import argparse
import asyncio
import json
import os
import sys

# Ensure app root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv


async def run_once(services) -> dict:
    report = await services.queue.process_pending_jobs()
    return report.to_dict()


async def run_loop(services, interval: float):
    from job_queue.consumer import PeriodicQueueProcessor

    processor = PeriodicQueueProcessor(services.queue, interval_seconds=interval)
    print(f"Processing notification jobs every {interval}s (Ctrl-C to stop)")
    try:
        await processor.start()
    finally:
        print(f"Stopped after {processor.runs} run(s)")


async def show_status(services, job_id: str) -> int:
    job = await services.queue.get_job_status(job_id)
    if job is None:
        print(f"Job {job_id} not found", file=sys.stderr)
        return 1
    print(json.dumps(job.model_dump(mode="json"), indent=2))
    return 0


async def main_async(args) -> int:
    from config.settings import load_settings
    from core.bootstrap import build_services

    services = build_services(load_settings(args.config))
    await services.startup()
    try:
        if args.status:
            return await show_status(services, args.status)
        if args.loop:
            await run_loop(services, args.interval)
            return 0
        print(json.dumps(await run_once(services), indent=2))
        return 0
    finally:
        await services.shutdown()


def main():
    load_dotenv()

    parser = argparse.ArgumentParser(description="Process queued notification emails")
    parser.add_argument("--loop", action="store_true", help="Keep processing on an interval")
    parser.add_argument("--interval", type=float, default=60.0, help="Seconds between batches")
    parser.add_argument("--status", metavar="JOB_ID", help="Print one job's status and exit")
    parser.add_argument("--config", default=None, help="Path to settings.yaml")
    args = parser.parse_args()

    try:
        sys.exit(asyncio.run(main_async(args)))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
