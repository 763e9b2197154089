import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from asgiref.sync import async_to_sync
from celery import shared_task
from django.utils import timezone

from .conf import get_setting

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
    """Outcome of generating recommendations for many learners."""

    total: int = 0
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    partial: dict[str, list[str]] = field(default_factory=dict)
    recommendations: int = 0

    @property
    def processed(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "processed": self.processed,
            "succeeded": len(self.succeeded),
            "failed": dict(self.failed),
            "partial": {user_id: list(names) for user_id, names in self.partial.items()},
            "recommendations": self.recommendations,
        }


async def generate_for_learners(aggregator, user_ids, concurrency: int = 5, on_progress=None) -> BatchReport:
    """
    Run ``generate_all`` for every learner with bounded concurrency.

    A learner whose generation raises is recorded in ``failed`` and does not
    stop the batch. ``on_progress(processed, total)`` is called after each one.
    """
    user_ids = list(dict.fromkeys(user_ids))
    report = BatchReport(total=len(user_ids))
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def run(user_id):
        async with semaphore:
            try:
                bundle = await aggregator.generate_all(user_id)
            except Exception as e:
                logger.error(f"Recommendation generation failed for user {user_id}: {e}", exc_info=True)
                report.failed[user_id] = str(e)
            else:
                report.succeeded.append(user_id)
                report.recommendations += bundle.total
                if bundle.failed_categories:
                    report.partial[user_id] = list(bundle.failed_categories)
            if on_progress is not None:
                on_progress(report.processed, report.total)

    await asyncio.gather(*(run(user_id) for user_id in user_ids))
    return report


async def _generate_for_active_learners(user_ids=None, on_progress=None) -> BatchReport:
    from .factories import build_aggregator

    aggregator = build_aggregator()
    if user_ids is None:
        since = timezone.now() - timedelta(days=get_setting("ACTIVE_USER_WINDOW_DAYS"))
        user_ids = await aggregator.activity_store.find_active_user_ids(since)
    return await generate_for_learners(
        aggregator,
        user_ids,
        concurrency=get_setting("BATCH_CONCURRENCY"),
        on_progress=on_progress,
    )


@shared_task(bind=True, name="personalization.generate_recommendations")
def generate_recommendations_task(self, user_ids=None):
    """
    Celery task generating every recommendation category for active learners.

    Pass `user_ids` to target specific learners instead of everyone active in
    the last ACTIVE_USER_WINDOW_DAYS days.
    """
    logger.info("Celery task received: Generate recommendations")

    def on_progress(processed, total):
        self.update_state(
            state="PROGRESS",
            meta={"processed": processed, "total": total, "progress": processed / total if total else 1.0},
        )

    try:
        report = async_to_sync(_generate_for_active_learners)(user_ids, on_progress)
    except Exception as e:
        logger.error(f"Celery task failed during recommendation generation: {e}", exc_info=True)
        raise

    logger.info(
        f"Generated {report.recommendations} recommendations for {len(report.succeeded)} "
        f"learners ({len(report.failed)} failed)"
    )
    return report.to_dict()


@shared_task(name="personalization.cleanup_expired_recommendations")
def cleanup_expired_recommendations_task():
    """Celery task deleting recommendations whose expiry has passed."""
    logger.info("Celery task received: Clean up expired recommendations")
    from .factories import build_collaborator

    repository = build_collaborator("RECOMMENDATION_REPOSITORY")
    try:
        deleted = async_to_sync(repository.delete_expired)(timezone.now())
    except Exception as e:
        logger.error(f"Celery task failed during recommendation cleanup: {e}", exc_info=True)
        raise
    return deleted
