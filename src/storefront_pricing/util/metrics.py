from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from storefront_pricing.util.logging import get_logger, log_event


def metric_datum(name: str, value: float, unit: str = "Count", **dimensions: str) -> Dict[str, Any]:
    datum: Dict[str, Any] = {"MetricName": name, "Value": float(value), "Unit": unit}
    if dimensions:
        datum["Dimensions"] = [
            {"Name": key, "Value": str(dimension)} for key, dimension in sorted(dimensions.items())
        ]
    return datum


class CloudWatchMetrics:
    """Counters for recalculation runs and degraded price quotes.

    Nothing is sent unless ``enabled``; a failed publish is logged and dropped.
    """

    def __init__(self, *, namespace: str, enabled: bool) -> None:
        self.namespace = namespace
        self.enabled = enabled
        self.client = boto3.client("cloudwatch") if enabled else None
        self.logger = get_logger(self.__class__.__name__)

    @classmethod
    def from_env(cls) -> "CloudWatchMetrics":
        enabled = os.getenv("CLOUDWATCH_METRICS_ENABLED", "false").lower() == "true"
        namespace = os.getenv("CLOUDWATCH_METRICS_NAMESPACE", "StorefrontPricing")
        return cls(namespace=namespace, enabled=enabled)

    def publish(self, data: List[Dict[str, Any]]) -> None:
        if not self.enabled or not self.client or not data:
            return
        try:
            self.client.put_metric_data(Namespace=self.namespace, MetricData=data)
        except (BotoCoreError, ClientError) as exc:
            log_event(
                self.logger,
                "cloudwatch_metric_failed",
                level=logging.WARNING,
                metrics=[datum["MetricName"] for datum in data],
                error=str(exc),
            )

    def record_recalculation(
        self,
        *,
        updated: int,
        skipped: int,
        failed: int,
        duration_seconds: Optional[float] = None,
    ) -> None:
        data = [
            metric_datum("CommissionsUpdated", updated),
            metric_datum("CommissionsSkipped", skipped),
            metric_datum("CommissionsFailed", failed),
        ]
        if duration_seconds is not None:
            data.append(metric_datum("RecalculationDuration", duration_seconds, unit="Seconds"))
        self.publish(data)

    def record_price_unavailable(self, *, reason: str) -> None:
        self.publish([metric_datum("PriceUnavailable", 1, reason=reason)])
