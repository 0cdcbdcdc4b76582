#!/usr/bin/env python3
"""Seed the dashboard tables with realistic usage documents and users.

This script creates one usage document per user (cumulative totals plus a
bounded list of recent usage entries) and one profile per user, some of
them still waiting for approval.

Configure as needed to determine the size of the data set:
    NUM_USERS = 12
    DAYS_BACK = 45
    BATCHES_PER_DAY = 3
    PENDING_RATIO = 0.25

Usage:
    source .venv/bin/activate
    python scripts/seed_usage_data.py --region us-east-1

Environment variables (or use .env file):
    AWS_REGION: AWS region for DynamoDB tables
    USAGE_TABLE_NAME: Usage documents table (default: admin-dashboard-usage)
    USERS_TABLE_NAME: User profiles table (default: admin-dashboard-users)
"""

import argparse
import os
import random
import sys
import uuid
from datetime import datetime, timedelta, UTC
from typing import List, Dict, Any, Tuple

import boto3
from botocore.config import Config
from dotenv import load_dotenv

from usage_dashboard.models.usage import UsageEntry, UserUsageRecord
from usage_dashboard.models.user import AppUser

# Load .env file if present
load_dotenv()

# Configuration
NUM_USERS = 12
DAYS_BACK = 45
BATCHES_PER_DAY = 3
PENDING_RATIO = 0.25

# Entries kept in each usage document's recent_usage list
RECENT_USAGE_LIMIT = 20

# Model name -> (input price, output price) in USD per 1K tokens
MODEL_PRICING = {
    "gpt-4": (0.03, 0.06),
    "gpt-4o": (0.005, 0.015),
    "gpt-3.5-turbo": (0.0005, 0.0015),
    "claude-3-haiku": (0.00025, 0.00125),
    "claude-3-sonnet": (0.003, 0.015),
}

FIRST_NAMES = [
    "alex", "blake", "casey", "dana", "emery", "finley",
    "gray", "harper", "indigo", "jordan", "kai", "logan",
]


def generate_user(index: int, now: datetime) -> AppUser:
    """Generate a user profile created some time in the last 90 days."""
    name = FIRST_NAMES[index % len(FIRST_NAMES)]
    return AppUser(
        user_id=str(uuid.uuid4()),
        email=f"{name}.{index}@example.com",
        username=f"{name}{index}",
        is_approved=random.random() >= PENDING_RATIO,
        created_at=now - timedelta(days=random.randint(1, 90), minutes=random.randint(0, 1439)),
    )


def generate_usage_entry(timestamp: datetime) -> UsageEntry:
    """Generate one batch of API calls against a random model."""
    model = random.choice(list(MODEL_PRICING))
    input_price, output_price = MODEL_PRICING[model]
    calls = random.randint(1, 8)
    input_tokens = calls * random.randint(200, 3000)
    output_tokens = calls * random.randint(50, 1200)
    cost = input_tokens / 1000 * input_price + output_tokens / 1000 * output_price

    return UsageEntry(
        timestamp=timestamp,
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
        cost_usd=round(cost, 6),
        calls=calls,
    )


def generate_usage_record(user: AppUser, now: datetime) -> UserUsageRecord:
    """Generate a usage document for one user.

    Totals cover every generated entry; only the newest RECENT_USAGE_LIMIT
    entries are kept in recent_usage.
    """
    entries = []
    for day in range(DAYS_BACK):
        for _ in range(random.randint(0, BATCHES_PER_DAY)):
            timestamp = now - timedelta(
                days=day,
                seconds=random.randint(0, 86399),
                microseconds=random.randint(0, 999999),
            )
            entries.append(generate_usage_entry(timestamp))

    entries.sort(key=lambda e: e.timestamp, reverse=True)
    created_at = entries[-1].timestamp if entries else now

    return UserUsageRecord(
        user_id=user.user_id,
        total_calls=sum(e.calls for e in entries),
        total_input_tokens=sum(e.input_tokens for e in entries),
        total_output_tokens=sum(e.output_tokens for e in entries),
        total_tokens=sum(e.total_tokens for e in entries),
        total_cost_usd=round(sum(e.cost_usd for e in entries), 6),
        last_updated=entries[0].timestamp if entries else now,
        created_at=created_at,
        recent_usage=entries[:RECENT_USAGE_LIMIT],
    )


def generate_all_records(num_users: int) -> Tuple[List[AppUser], List[UserUsageRecord]]:
    """Generate user profiles and usage documents.

    Pending users get no usage document, matching accounts that have not
    been let in yet.
    """
    now = datetime.now(UTC)
    users = [generate_user(i, now) for i in range(num_users)]
    records = [generate_usage_record(u, now) for u in users if u.is_approved]
    return users, records


def batch_write_items(client, table_name: str, items: List[Dict[str, Any]]) -> int:
    """Write items to DynamoDB in batches of 25."""
    written = 0

    for i in range(0, len(items), 25):
        batch = items[i:i + 25]
        request_items = {
            table_name: [{"PutRequest": {"Item": item}} for item in batch]
        }

        response = client.batch_write_item(RequestItems=request_items)
        written += len(batch)

        # Handle unprocessed items
        unprocessed = response.get("UnprocessedItems", {})
        while unprocessed:
            response = client.batch_write_item(RequestItems=unprocessed)
            unprocessed = response.get("UnprocessedItems", {})

    return written


def seed(region: str, usage_table: str, users_table: str, num_users: int, dry_run: bool = False):
    """Generate the data set and write it to DynamoDB."""
    print(f"\n{'=' * 60}")
    print("Usage Dashboard Seed Data")
    print(f"{'=' * 60}")
    print(f"\nConfiguration:")
    print(f"  Region: {region}")
    print(f"  Users: {num_users}")
    print(f"  Days: {DAYS_BACK}")
    print(f"\nTables:")
    print(f"  Usage: {usage_table}")
    print(f"  Users: {users_table}")

    users, records = generate_all_records(num_users)
    pending = [u for u in users if not u.is_approved]

    print(f"\nGenerated records:")
    print(f"  User profiles: {len(users)} ({len(pending)} pending approval)")
    print(f"  Usage documents: {len(records)}")
    print(f"  Total cost: ${sum(r.total_cost_usd for r in records):,.2f}")

    if dry_run:
        print(f"\n[DRY RUN] Skipping database writes")
        return

    client = boto3.client(
        "dynamodb",
        config=Config(region_name=region, retries={"max_attempts": 3, "mode": "adaptive"}),
    )

    print(f"\nWriting to DynamoDB...")
    users_written = batch_write_items(client, users_table, [u.to_dynamodb_item() for u in users])
    print(f"  Wrote {users_written} user profiles to {users_table}")
    usage_written = batch_write_items(client, usage_table, [r.to_dynamodb_item() for r in records])
    print(f"  Wrote {usage_written} usage documents to {usage_table}")

    print(f"\nPending users (all @example.com):")
    for u in pending:
        print(f"  - {u.email}")


def main():
    parser = argparse.ArgumentParser(
        description="Seed usage documents and user profiles for the usage dashboard"
    )
    parser.add_argument(
        "--region",
        default=os.environ.get("AWS_REGION", "us-east-1"),
        help="AWS region (default: AWS_REGION env var or us-east-1)",
    )
    parser.add_argument(
        "--usage-table",
        default=os.environ.get("USAGE_TABLE_NAME", "admin-dashboard-usage"),
        help="Usage documents table name",
    )
    parser.add_argument(
        "--users-table",
        default=os.environ.get("USERS_TABLE_NAME", "admin-dashboard-users"),
        help="User profiles table name",
    )
    parser.add_argument(
        "--users",
        type=int,
        default=NUM_USERS,
        help=f"Number of users to generate (default: {NUM_USERS})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Generate data but don't write to DynamoDB",
    )

    args = parser.parse_args()

    try:
        seed(
            region=args.region,
            usage_table=args.usage_table,
            users_table=args.users_table,
            num_users=args.users,
            dry_run=args.dry_run,
        )
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
