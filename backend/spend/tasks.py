from __future__ import annotations

import logging
from typing import Any, Optional

from accounts.tenant_context import tenant_context
from core.celery import app

from .ingest import execute_import
from .models import ImportBatch

logger = logging.getLogger(__name__)


@app.task(bind=True, name="spend.tasks.run_spend_import")
def run_spend_import(
    self,
    batch_id: str,
    rows: list[dict[str, Any]],
    platform: Optional[str] = None,
    column_mappings: Optional[dict[str, str]] = None,
) -> dict[str, Any]:
    """Process a queued spend import recorded as ``ImportBatch(batch_id)``."""

    batch = ImportBatch.objects.select_related("client", "imported_by").get(batch_id=batch_id)
    with tenant_context(str(batch.client_id)):
        try:
            _, result = execute_import(
                client=batch.client,
                rows=rows,
                user=batch.imported_by,
                platform=platform,
                file_name=batch.file_name,
                column_mappings=column_mappings,
                batch=batch,
            )
        except Exception:
            ImportBatch.objects.filter(pk=batch.pk).update(status=ImportBatch.STATUS_FAILED)
            logger.exception("spend.import.task_failed", extra={"batch_id": batch_id})
            raise
    return result.as_dict()
