"""Seed DynamoDB tables with a sample welding-workshop catalog.

Usage:
    python scripts/seed_dynamodb.py --endpoint-url http://localhost:4566
"""

from __future__ import annotations

import argparse
from typing import Any

import boto3

TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {"name": "weldpay-catalog"},
    {"name": "weldpay-work-records"},
    {"name": "weldpay-salaries"},
]

SAMPLE_WORK_TYPES: list[dict[str, Any]] = [
    {"id": "wt-weld", "name": "Frame welding", "department": "welding",
     "calculation_type": "weld_count", "unit_price": 0},
    {"id": "wt-assembly", "name": "Assembly", "department": "assembly",
     "calculation_type": "hourly", "unit_price": 60000},
    {"id": "wt-cleanup", "name": "Workshop cleanup", "department": "general",
     "calculation_type": "daily", "unit_price": 400000},
]

SAMPLE_WORK_ITEMS: list[dict[str, Any]] = [
    {"id": "item-gate", "name": "Gate frame", "difficulty_level": "medium",
     "price_per_weld": 5000, "welds_per_item": 2, "total_quantity": 100, "status": "in_production"},
    {"id": "item-rail", "name": "Stair rail", "difficulty_level": "hard",
     "price_per_weld": 8000, "welds_per_item": 4, "total_quantity": 40, "status": "new"},
]

SAMPLE_OVERTIME: list[dict[str, Any]] = [
    {"work_type_id": "wt-weld", "overtime_price_per_weld": 1000, "overtime_percentage": "0"},
    {"work_type_id": "wt-assembly", "overtime_price_per_weld": 0, "overtime_percentage": "50"},
]


def create_tables(ddb: Any, suffix: str = "") -> None:
    """Create the WeldPay DynamoDB tables. Skips if table already exists."""
    client = ddb.meta.client
    existing = client.list_tables().get("TableNames", [])

    for defn in TABLE_DEFINITIONS:
        table_name = f"{defn['name']}{suffix}"
        if table_name in existing:
            print(f"  Table {table_name} already exists, skipping")
            continue
        client.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        print(f"  Created table {table_name}")


def seed_catalog(ddb: Any, suffix: str = "") -> None:
    """Seed sample work types, work items and overtime configs."""
    tbl = ddb.Table(f"weldpay-catalog{suffix}")
    with tbl.batch_writer() as batch:
        for wt in SAMPLE_WORK_TYPES:
            batch.put_item(Item={"PK": f"WORKTYPE#{wt['id']}", "SK": "WORKTYPE", **wt})
        for item in SAMPLE_WORK_ITEMS:
            # quota counter starts empty
            batch.put_item(Item={
                "PK": f"ITEM#{item['id']}", "SK": "ITEM",
                **item, "quantity_made": 0, "version": 0,
            })
        for config in SAMPLE_OVERTIME:
            batch.put_item(Item={"PK": f"OVERTIME#{config['work_type_id']}", "SK": "OVERTIME", **config})
    print(
        f"  Seeded {len(SAMPLE_WORK_TYPES)} work types, {len(SAMPLE_WORK_ITEMS)} work items, "
        f"{len(SAMPLE_OVERTIME)} overtime configs"
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed DynamoDB tables for WeldPay")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, suffix=args.table_suffix)

    print("Seeding catalog...")
    seed_catalog(ddb, suffix=args.table_suffix)

    print("Done!")


if __name__ == "__main__":
    main()
