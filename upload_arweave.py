#!/usr/bin/env python3
"""
Batch upload X1 Punk images to Arweave.

Uploads are resumable: the manifest records every archived punk and re-runs
skip them.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from arweave_client import ArweaveClient
from managers.batch_uploader import BatchUploader
from managers.config_manager import load_settings
from managers.state_store import UploadManifestStore

logger = logging.getLogger("X1Punks")

TEST_MODE_COUNT = 5


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Batch upload X1 Punk images to Arweave",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  x1punks-upload                # Upload all punks
  x1punks-upload --test         # Test with the first 5 punks
  x1punks-upload --start=500    # Resume from punk #500
        """
    )
    parser.add_argument("--test", action="store_true", help=f"Upload only {TEST_MODE_COUNT} punks from --start")
    parser.add_argument("--start", type=int, default=0, help="First punk id to upload (default: 0)")
    parser.add_argument("--end", type=int, default=None, help="Stop before this punk id (default: total supply)")
    parser.add_argument("--batch-size", type=positive_int, default=None, help="Concurrent uploads per group")
    parser.add_argument("--delay", type=float, default=None, help="Seconds to wait between groups")
    parser.add_argument("--project-root", default=None, help="Directory holding generated/ and the state files")
    return parser


async def run_upload(uploader: BatchUploader, client: ArweaveClient, start: int, end: int, test_mode: bool):
    balance = await asyncio.to_thread(client.balance)

    print("╔══════════════════════════════════════════════════╗")
    print("║   X1 PUNKS - ARWEAVE BATCH UPLOAD               ║")
    print("╚══════════════════════════════════════════════════╝")
    print()
    print(f"Wallet:  {client.address}")
    print(f"Balance: {balance} AR")
    print(f"Range:   Punk #{start} → #{end - 1} ({end - start} punks)")
    print(f"Mode:    {f'TEST ({TEST_MODE_COUNT} punks)' if test_mode else 'FULL UPLOAD'}")
    print()

    summary = await uploader.upload_range(start, end)

    final_balance = await asyncio.to_thread(client.balance)
    spent = balance - final_balance

    print()
    print("╔══════════════════════════════════════════════════╗")
    print("║   UPLOAD COMPLETE                                ║")
    print("╚══════════════════════════════════════════════════╝")
    print(f"  Uploaded:  {summary.uploaded}")
    print(f"  Skipped:   {summary.skipped}")
    print(f"  Failed:    {summary.failed}")
    print(f"  Total:     {summary.total_in_manifest} in manifest")
    print(f"  AR Spent:  ~{spent:.6f} AR")
    print(f"  Remaining: {final_balance} AR")
    print(f"  Manifest:  {uploader.manifest.path}")
    print()
    return summary


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO)
    args = build_parser().parse_args(argv)

    settings = load_settings(project_root=args.project_root)
    if not settings.arweave_wallet_file.exists():
        print(f"ERROR: {settings.arweave_wallet_file.name} not found!", file=sys.stderr)
        return 1

    start = max(0, args.start)
    end = settings.total_supply if args.end is None else min(args.end, settings.total_supply)
    if args.test:
        end = min(start + TEST_MODE_COUNT, end)
    if start >= end:
        print(f"Nothing to upload in range [{start}, {end})")
        return 0

    try:
        client = ArweaveClient(settings.arweave_wallet_file, settings.arweave_gateway)
        uploader = BatchUploader(
            client,
            UploadManifestStore(settings.manifest_file),
            settings.generated_dir,
            batch_size=args.batch_size or settings.upload_batch_size,
            delay_seconds=settings.upload_delay_seconds if args.delay is None else args.delay,
        )
        asyncio.run(run_upload(uploader, client, start, end, args.test))
    except KeyboardInterrupt:
        print("\n\n⚠️  Upload interrupted; re-run to resume from the manifest.")
        return 1
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
