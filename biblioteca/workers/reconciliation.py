import logging

from celery import shared_task

from biblioteca.services.reconciliation_service import reconcile_pending_payments

logger = logging.getLogger(__name__)


@shared_task(
    name="biblioteca.workers.reconciliation.reconcile_pending_payments_task",
    ignore_result=True,
)
def reconcile_pending_payments_task(batch_size=None):
    report = reconcile_pending_payments(batch_size)
    logger.info(
        "Scheduled reconciliation complete",
        extra={
            "processed": report["processed"],
            "activated": report["activated"],
            "errors": len(report["errors"]),
        },
    )
    return {k: v for k, v in report.items() if k != "details"}
