#!/usr/bin/env python3
"""
Basic usage examples for Bulk Transfer.

This script demonstrates the most common operations:
- Inspecting a slicing plan
- Uploading a large file with parallel multipart upload
- Deleting everything under a prefix
- Error handling
"""

import os
import tempfile
from pathlib import Path

from bulktransfer import (
    BatchDeleteError,
    BulkTransferAPI,
    FatalBudgetExceeded,
    TransferConfig,
)


def main():
    """Demonstrate basic bulk transfer operations."""

    container = os.getenv("BULKTRANSFER_DEMO_CONTAINER")
    if not container:
        print("Set BULKTRANSFER_DEMO_CONTAINER (and BULKTRANSFER_S3_* credentials) to run this demo")
        return

    config = TransferConfig.from_env(parallel_degree=8)
    with BulkTransferAPI(config=config) as api:
        print("\n1. Slicing plan for 100 MiB...")
        plan = api.plan(100 * 1024 * 1024)
        print(f"   {plan.effective_parts} parts of {plan.chunk_size} bytes "
              f"(last part {plan.remainder} bytes)")

        print("\n2. Uploading a 100 MiB file...")
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "demo.bin"
            path.write_bytes(os.urandom(100 * 1024 * 1024))
            try:
                etag = api.upload_file(path, container, "demo/demo.bin")
                print(f"   Uploaded, ETag {etag}")
            except FatalBudgetExceeded as e:
                print(f"   Upload aborted after {e.error_count} failed parts: {e.failed_parts}")
                return

        print("\n3. Deleting everything under demo/...")
        try:
            deleted = api.delete_prefix(container, "demo/")
            print(f"   Deleted {deleted} objects")
        except BatchDeleteError as e:
            print(f"   Could not delete {len(e.failed_keys)} keys")


if __name__ == "__main__":
    main()
