from __future__ import annotations

import logging
import sys
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from storefront_pricing.adapters.storage.s3 import S3ReportArchive
from storefront_pricing.app.config.loader import load_service_config_from_env
from storefront_pricing.app.wiring import build_backends
from storefront_pricing.engine.commission.models import RecalculationReport
from storefront_pricing.engine.commission.recalculate import CommissionRecalculator
from storefront_pricing.util.logging import get_logger, log_event
from storefront_pricing.util.metrics import CloudWatchMetrics

logger = get_logger("storefront_pricing.recalculate")


def run(
    *,
    commissions,
    catalog,
    archive: Optional[S3ReportArchive] = None,
    metrics: Optional[CloudWatchMetrics] = None,
) -> RecalculationReport:
    """Recalculate every stored commission, then archive and publish the report.

    Only one run may be in flight at a time; nothing here guards against a
    concurrent invocation.
    """
    report = CommissionRecalculator(commissions=commissions, catalog=catalog).recalculate_all()
    if archive:
        try:
            key = archive.archive(report)
        except (BotoCoreError, ClientError) as exc:
            log_event(logger, "report_archive_failed", level=logging.WARNING, error=str(exc))
        else:
            log_event(logger, "report_archived", bucket=archive.bucket, key=key)
    if metrics:
        duration = (report.finished_at - report.started_at).total_seconds() if report.finished_at else None
        metrics.record_recalculation(
            updated=report.updated,
            skipped=report.skipped,
            failed=report.failed,
            duration_seconds=duration,
        )
    return report


def main() -> int:
    try:
        config = load_service_config_from_env()
        backends = build_backends(config, required=True)
        archive = S3ReportArchive(config.reports.bucket, config.reports.prefix) if config.reports.bucket else None
        report = run(
            commissions=backends.commissions,
            catalog=backends.catalog,
            archive=archive,
            metrics=CloudWatchMetrics.from_env(),
        )
    except Exception as exc:  # noqa: BLE001
        log_event(
            logger,
            "recalculation_aborted",
            level=logging.ERROR,
            error_type=exc.__class__.__name__,
            error=str(exc),
        )
        return 1
    log_event(logger, "recalculation_complete", **report.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
