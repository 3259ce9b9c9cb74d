#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
from pathlib import Path

from storefront_pricing.adapters.catalog.memory import InMemoryCatalog
from storefront_pricing.engine.pricing.models import CatalogProduct
from storefront_pricing.persistence.memory import InMemoryCommissions
from storefront_pricing.scripts.recalculate import run


def load_json(path: str) -> list[dict]:
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array")
    return data


def main() -> None:
    parser = argparse.ArgumentParser(description="Dry-run a commission recalculation against JSON exports")
    parser.add_argument("--commissions", required=True, help="JSON array of commission rows")
    parser.add_argument("--products", required=True, help="JSON array of catalog products (with variants)")
    parser.add_argument("--output-dir", default="outputs")
    args = parser.parse_args()

    catalog = InMemoryCatalog(CatalogProduct.model_validate(item) for item in load_json(args.products))
    commissions = InMemoryCommissions(load_json(args.commissions))
    report = run(commissions=commissions, catalog=catalog)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    (output_dir / "commissions.json").write_text(
        json.dumps(commissions.list_all(), indent=2, default=str), encoding="utf-8"
    )
    (output_dir / "report.json").write_text(report.model_dump_json(indent=2), encoding="utf-8")
    print(json.dumps(report.summary()))


if __name__ == "__main__":
    main()
