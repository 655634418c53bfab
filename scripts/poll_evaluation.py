"""Wait for a submission's AI evaluation and print it.

Usage:
    python scripts/poll_evaluation.py 42 --base-url http://localhost:5001
"""

import argparse
import asyncio
import json
import os
import sys

import httpx

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from writeedge.client.poller import (  # noqa: E402
    EvaluationFailedError,
    EvaluationPoller,
    EvaluationTimeoutError,
)
from writeedge.core.config import settings  # noqa: E402


async def main(args: argparse.Namespace) -> int:
    async with httpx.AsyncClient(base_url=args.base_url, timeout=args.timeout) as client:
        poller = EvaluationPoller(client, delay=args.delay, max_attempts=args.max_attempts)
        try:
            evaluation = await poller.wait_for(args.submission_id)
        except EvaluationFailedError as e:
            print(f"FAILED: {e}", file=sys.stderr)
            return 2
        except EvaluationTimeoutError as e:
            print(f"TIMEOUT: {e}", file=sys.stderr)
            return 3
        except httpx.HTTPStatusError as e:
            print(f"HTTP {e.response.status_code}: {e.response.text}", file=sys.stderr)
            return 1

    print(json.dumps(evaluation, indent=2))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Poll a submission's evaluation until it is ready")
    parser.add_argument("submission_id", type=int)
    parser.add_argument("--base-url", default=f"http://localhost:{settings.PORT}")
    parser.add_argument("--delay", type=float, default=settings.POLL_DELAY_SECONDS)
    parser.add_argument("--max-attempts", type=int, default=settings.POLL_MAX_ATTEMPTS)
    parser.add_argument("--timeout", type=float, default=30.0)
    sys.exit(asyncio.run(main(parser.parse_args())))
