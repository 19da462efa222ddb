"""
Sample Order Export Generator
Writes a CSV shaped like the order source's export, including the messy
destination payloads seen in production (double-encoded JSON, addresses in
the city field, unknown countries), for local import and dashboard runs.

Usage:
    python scripts/generate_orders_export.py --orders 20000
    reuse-analytics import-csv data/generated/orders_export.csv
"""

import argparse
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import numpy as np
import polars as pl
from faker import Faker

fake = Faker(["en_GB", "en_US"])
Faker.seed(42)
rng = np.random.default_rng(42)

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "generated"

STORES = ["green-basket.myshopify.com", "refill-co.myshopify.com", "loop-home.myshopify.com"]

LOCATIONS = [
    ("Manchester", "England", "United Kingdom"),
    ("London", "England", "United Kingdom"),
    ("Edinburgh", "Scotland", "United Kingdom"),
    ("Cardiff", "Wales", "United Kingdom"),
    ("Dublin", "Leinster", "Ireland"),
    ("Austin", "Texas", "United States"),
    ("Portland", "Oregon", "United States"),
    ("Toronto", "Ontario", "Canada"),
    ("Melbourne", "Victoria", "Australia"),
    ("Berlin", "Berlin", "Germany"),
]

# Share of rows per destination shape
SHAPES = ["clean", "double_encoded", "address_city", "unknown_country", "missing"]
SHAPE_WEIGHTS = [0.70, 0.12, 0.08, 0.05, 0.05]


def destination_for(shape: str, city: str, province: str, country: str):
    payload = {
        "first_name": fake.first_name(),
        "address1": fake.street_address(),
        "city": city,
        "province": province,
        "country": country,
        "zip": fake.postcode(),
    }
    if shape == "clean":
        return json.dumps(payload)
    if shape == "double_encoded":
        return json.dumps(json.dumps(payload))
    if shape == "address_city":
        payload["city"] = fake.street_address()
        return json.dumps(payload)
    if shape == "unknown_country":
        payload["country"] = "Wakanda"
        return json.dumps(payload)
    return None


def generate_orders(n: int, start_id: int = 100000) -> pl.DataFrame:
    print(f"Generating {n:,} orders...")

    now = datetime.now(timezone.utc)
    opt_in = rng.random(n) < 0.35
    # Opt-in baskets skew slightly larger
    prices = np.round(rng.lognormal(mean=3.8, sigma=0.7, size=n) * np.where(opt_in, 1.15, 1.0), 2)
    location_idx = rng.integers(0, len(LOCATIONS), n)
    shapes = rng.choice(SHAPES, size=n, p=SHAPE_WEIGHTS)
    stores = rng.choice(STORES, size=n, p=[0.5, 0.3, 0.2])
    ages = rng.integers(0, 365 * 24 * 60, n)

    destinations = []
    for idx, shape in zip(location_idx, shapes):
        city, province, country = LOCATIONS[idx]
        destinations.append(destination_for(shape, city, province, country))

    created = [(now - timedelta(minutes=int(age))).isoformat() for age in ages]

    return pl.DataFrame({
        "id": [str(start_id + i) for i in range(n)],
        "user_id": stores,
        "opt_in": np.where(opt_in, "true", "false"),
        "payment_status": rng.choice(["paid", "pending", "refunded"], size=n, p=[0.9, 0.07, 0.03]),
        "total_price": prices,
        "destination": destinations,
        "shopify_created_at": created,
        "created_at": created,
    })


def main():
    parser = argparse.ArgumentParser(description="Generate a sample order export CSV")
    parser.add_argument("--orders", type=int, default=20000, help="Number of orders")
    parser.add_argument("--start-id", type=int, default=100000, help="First numeric order id")
    parser.add_argument(
        "--output",
        type=Path,
        default=OUTPUT_DIR / "orders_export.csv",
        help="Output CSV path",
    )
    args = parser.parse_args()

    args.output.parent.mkdir(parents=True, exist_ok=True)
    df = generate_orders(args.orders, args.start_id)
    df.write_csv(args.output)
    print(f"Wrote {df.height:,} rows to {args.output}")


if __name__ == "__main__":
    main()
