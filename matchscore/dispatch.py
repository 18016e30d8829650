#!/usr/bin/env python3
"""
Scoring dispatch over Redis Queue (RQ).

The trigger only enqueues; the worker job builds an AppContext and calls the
same synchronous API that in-process callers use.

Events:
- match-score/calculate.requested: {profile_id, opportunity_id, method?, organization_id?, user_id?}
- match-score/batch.requested:     {profile_id, opportunity_ids, method?, concurrency_limit?, ...}
"""

import logging
import os
from typing import Any, Dict, List, Optional

from redis import Redis
from rq import Queue, Retry, Worker

from matchscore.exceptions import NotFoundError, ValidationError
from matchscore.interfaces import TaskTrigger

logger = logging.getLogger(__name__)

CALCULATE_EVENT = "match-score/calculate.requested"
BATCH_EVENT = "match-score/batch.requested"
HANDLED_EVENTS = (CALCULATE_EVENT, BATCH_EVENT)

CONFIG_PATH_ENV = "MATCHSCORE_CONFIG"


class RQTaskTrigger(TaskTrigger):
    """Enqueues scoring events on an RQ queue."""

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        queue_name: str = "match-scoring",
        job_timeout_seconds: int = 600,
        queue: Optional[Queue] = None,
    ):
        if queue is None:
            queue = Queue(queue_name, connection=Redis.from_url(redis_url))
        self.queue = queue
        self.job_timeout_seconds = job_timeout_seconds

    def enqueue(self, event_name: str, payload: Dict[str, Any]) -> str:
        if event_name not in HANDLED_EVENTS:
            raise ValidationError(f"Unknown event {event_name!r}")
        if not payload.get("profile_id"):
            raise ValidationError("payload.profile_id is required")

        # Transient failures only; not-found and validation errors are returned, not raised
        retry_policy = Retry(max=3, interval=[30, 60, 120])
        job = self.queue.enqueue(
            run_scoring_job,
            event_name,
            payload,
            job_timeout=self.job_timeout_seconds,
            result_ttl=86400,
            retry=retry_policy
        )
        logger.info(f"Queued {event_name} as job {job.id}")
        return job.id


def handle_event(context, event_name: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Run one event against a wired AppContext and return a JSON-friendly summary."""
    try:
        if event_name == CALCULATE_EVENT:
            score = context.scoring_service.score(
                payload["profile_id"],
                payload.get("opportunity_id"),
                method=payload.get("method", "calculation"),
                organization_id=payload.get("organization_id"),
                user_id=payload.get("user_id"),
                force_refresh=payload.get("force_refresh", False),
            )
            return {
                "status": "ok",
                "score_id": score.id,
                "overall_score": score.overall_score,
                "scoring_method": score.scoring_method.value,
                "degraded": score.degraded,
            }

        if event_name == BATCH_EVENT:
            result = context.batch_coordinator.score_batch(
                payload["profile_id"],
                payload.get("opportunity_ids", []),
                concurrency_limit=payload.get("concurrency_limit"),
                method=payload.get("method", "calculation"),
                organization_id=payload.get("organization_id"),
                user_id=payload.get("user_id"),
            )
            return {
                "status": "ok",
                "results": {opp_id: score.id for opp_id, score in result.results.items()},
                "failures": {opp_id: failure.error_type for opp_id, failure in result.failures.items()},
                "duration_ms": result.duration_ms,
            }
    except (NotFoundError, ValidationError) as e:
        logger.warning(f"{event_name} rejected: {e}")
        return {"status": "error", "error": str(e), "type": type(e).__name__}

    raise ValidationError(f"Unknown event {event_name!r}")


# Worker task - must be at module level for RQ
def run_scoring_job(event_name: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    from matchscore.app_context import AppContext
    from matchscore.config_loader import load_config

    config = load_config(os.environ.get(CONFIG_PATH_ENV, "config.yaml"))
    context = AppContext.build(config)
    try:
        logger.info(f"Processing {event_name} for profile {payload.get('profile_id')}")
        return handle_event(context, event_name, payload)
    finally:
        context.close()


def start_worker(redis_url: str, queues: Optional[List[str]] = None, burst: bool = False) -> None:
    """Start an RQ worker for scoring jobs."""
    queues = queues or ["match-scoring"]
    logger.info(f"Starting RQ worker on queues: {', '.join(queues)} (burst={burst})")

    redis_conn = Redis.from_url(redis_url)
    redis_conn.ping()
    worker = Worker(queues, connection=redis_conn)
    worker.work(burst=burst)
