#!/usr/bin/env python3
"""
Artifact Worker Runner

Run the artifact worker outside the API server.

Usage:
    python run_artifact_worker.py              # Poll until Ctrl-C
    python run_artifact_worker.py --once       # Run a single poll cycle (cron / serverless)
    python run_artifact_worker.py --retry ID   # Requeue a FAILED artifact
"""

import asyncio
import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from dotenv import load_dotenv
load_dotenv()


async def run_once() -> int:
    from artifact_worker.services.worker import create_artifact_worker

    worker = create_artifact_worker()
    result = await worker.tick()

    print(f"🔁 Recovered stuck jobs: {result.recovered}")
    print(f"📦 Processed jobs: {result.processed}")
    return 0


async def run_retry(artifact_id: str) -> int:
    from artifact_worker.services.worker import create_artifact_worker
    from artifact_worker.utils.errors import InvalidJobStateError

    worker = create_artifact_worker()
    try:
        job = await worker.retry_failed_artifact(artifact_id)
    except InvalidJobStateError as e:
        print(f"❌ {e}")
        return 1

    if job is None:
        print(f"❌ Artifact {artifact_id} not found")
        return 1

    print(f"✅ Artifact {artifact_id} queued for retry")
    return 0


async def run_forever() -> int:
    from artifact_worker.services.worker import create_artifact_worker

    worker = create_artifact_worker()
    if not worker.start():
        print("❌ Storage not configured. Set SUPABASE_URL/SUPABASE_KEY or Uploadcare keys.")
        return 1

    print(f"🚀 Artifact worker {worker.worker_id} polling every {worker.poll_interval_seconds}s")
    print("   Press Ctrl-C to stop")
    try:
        await asyncio.Event().wait()
    finally:
        worker.stop()
        await worker.wait_idle()
    return 0


def main():
    parser = argparse.ArgumentParser(description="Artifact Worker")
    parser.add_argument("--once", action="store_true", help="Run a single poll cycle and exit")
    parser.add_argument("--retry", metavar="ID", help="Requeue a FAILED artifact by id")
    args = parser.parse_args()

    from artifact_worker.config import get_settings

    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.retry:
        code = asyncio.run(run_retry(args.retry))
    elif args.once:
        code = asyncio.run(run_once())
    else:
        try:
            code = asyncio.run(run_forever())
        except KeyboardInterrupt:
            print("\n👋 Stopped")
            code = 0

    sys.exit(code)


if __name__ == "__main__":
    main()
