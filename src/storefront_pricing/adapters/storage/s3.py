from __future__ import annotations

import json
from datetime import datetime

import boto3

from storefront_pricing.engine.commission.models import RecalculationReport


class S3ReportArchive:
    def __init__(self, bucket: str, prefix: str = "") -> None:
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.client = boto3.client("s3")

    def report_key(self, started_at: datetime) -> str:
        stamp = started_at.strftime("%Y%m%dT%H%M%SZ")
        key = f"recalculations/{stamp}/report.json"
        return f"{self.prefix}/{key}" if self.prefix else key

    def upload_text(self, key: str, body: str) -> None:
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body.encode("utf-8"),
            ContentType="application/json",
        )

    def archive(self, report: RecalculationReport) -> str:
        key = self.report_key(report.started_at)
        payload = report.model_dump(mode="json")
        payload["summary"] = report.summary()
        self.upload_text(key, json.dumps(payload))
        return key
