#!/usr/bin/env python3
"""
Command-line entry point.

    matchscore score PROFILE_ID OPPORTUNITY_ID [--method hybrid] [--org ORG]
    matchscore batch PROFILE_ID OPP_ID [OPP_ID ...] [--concurrency 3] [--enqueue]
    matchscore check PROFILE_ID OPP_ID [OPP_ID ...]
    matchscore feedback SCORE_ID --org ORG [--rating 4] [--outcome won]
    matchscore worker [--burst]
"""
import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from matchscore.app_context import DEFAULT_REDIS_URL, AppContext
from matchscore.config_loader import load_config
from matchscore.dispatch import BATCH_EVENT, CALCULATE_EVENT, CONFIG_PATH_ENV, start_worker
from matchscore.exceptions import MatchScoreError
from matchscore.models import Outcome, ScoringMethod
from matchscore.utils import CancellationToken

logger = logging.getLogger(__name__)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _run_score(context: AppContext, args) -> int:
    if args.enqueue:
        job_id = _require_trigger(context).enqueue(CALCULATE_EVENT, {
            "profile_id": args.profile_id,
            "opportunity_id": args.opportunity_id,
            "method": args.method,
            "organization_id": args.org,
        })
        _print_json({"job_id": job_id})
        return 0

    token = CancellationToken(args.timeout) if args.timeout else None
    score = context.scoring_service.score(
        args.profile_id,
        args.opportunity_id,
        method=args.method,
        organization_id=args.org,
        token=token,
        force_refresh=args.refresh,
    )
    _print_json(score.model_dump(mode="json"))
    return 0


def _run_batch(context: AppContext, args) -> int:
    if args.enqueue:
        job_id = _require_trigger(context).enqueue(BATCH_EVENT, {
            "profile_id": args.profile_id,
            "opportunity_ids": args.opportunity_ids,
            "method": args.method,
            "concurrency_limit": args.concurrency,
            "organization_id": args.org,
        })
        _print_json({"job_id": job_id})
        return 0

    token = CancellationToken(args.timeout) if args.timeout else None
    result = context.batch_coordinator.score_batch(
        args.profile_id,
        args.opportunity_ids,
        concurrency_limit=args.concurrency,
        method=args.method,
        organization_id=args.org,
        token=token,
    )
    _print_json({
        "profile_id": result.profile_id,
        "duration_ms": result.duration_ms,
        "total_cost_usd": result.total_cost_usd,
        "ranked": [
            {"opportunity_id": s.opportunity_id, "overall_score": s.overall_score, "confidence": s.confidence}
            for s in result.ranked()
        ],
        "failures": {opp_id: f.__dict__ for opp_id, f in result.failures.items()},
    })
    return 0 if not result.failures else 2


def _run_feedback(context: AppContext, args) -> int:
    record = context.feedback_recorder.record_feedback(
        args.score_id,
        args.org,
        rating=args.rating,
        comment=args.comment,
        outcome=args.outcome,
        actual_value=args.actual_value,
    )
    _print_json(record.model_dump(mode="json"))
    return 0


def _run_check(context: AppContext, args) -> int:
    result = context.scoring_service.check_existing(
        args.profile_id,
        args.opportunity_ids,
        organization_id=args.org,
        method=args.method,
    )
    _print_json({
        "profile_id": result.profile_id,
        "existing": {
            opp_id: {"score_id": s.id, "overall_score": s.overall_score, "created_at": s.created_at}
            for opp_id, s in result.existing.items()
        },
        "from_cache": result.from_cache,
        "missing": result.missing,
    })
    return 0


def _require_trigger(context: AppContext):
    if context.trigger is None:
        raise MatchScoreError("Dispatch is not enabled in config (dispatch.enabled)")
    return context.trigger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="matchscore", description="Contract opportunity match scoring")
    parser.add_argument('--config', default=os.environ.get(CONFIG_PATH_ENV, "config.yaml"),
                        help='Path to config.yaml')
    parser.add_argument('--log-level', default='INFO')
    subparsers = parser.add_subparsers(dest='command', required=True)

    methods = [m.value for m in ScoringMethod]

    score = subparsers.add_parser('score', help='Score one profile against one opportunity')
    score.add_argument('profile_id')
    score.add_argument('opportunity_id')
    score.add_argument('--method', choices=methods, default=ScoringMethod.CALCULATION.value)
    score.add_argument('--org', help='Organization id the caller belongs to')
    score.add_argument('--timeout', type=float, help='Overall deadline in seconds')
    score.add_argument('--refresh', action='store_true', help='Ignore any cached score')
    score.add_argument('--enqueue', action='store_true', help='Queue the request for a worker')

    batch = subparsers.add_parser('batch', help='Score one profile against many opportunities')
    batch.add_argument('profile_id')
    batch.add_argument('opportunity_ids', nargs='+')
    batch.add_argument('--method', choices=methods, default=ScoringMethod.CALCULATION.value)
    batch.add_argument('--concurrency', type=int)
    batch.add_argument('--org')
    batch.add_argument('--timeout', type=float)
    batch.add_argument('--enqueue', action='store_true')

    check = subparsers.add_parser('check', help='Report which opportunities already have a recent score')
    check.add_argument('profile_id')
    check.add_argument('opportunity_ids', nargs='+')
    check.add_argument('--method', choices=methods, default=ScoringMethod.CALCULATION.value)
    check.add_argument('--org')

    feedback = subparsers.add_parser('feedback', help='Record feedback or a bid outcome on a score')
    feedback.add_argument('score_id')
    feedback.add_argument('--org', required=True)
    feedback.add_argument('--rating', type=int)
    feedback.add_argument('--comment')
    feedback.add_argument('--outcome', choices=[o.value for o in Outcome])
    feedback.add_argument('--actual-value', type=float)

    worker = subparsers.add_parser('worker', help='Run an RQ worker for queued scoring jobs')
    worker.add_argument('--queue', action='append', dest='queues')
    worker.add_argument('--burst', action='store_true', help='Exit once the queue is empty')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config = load_config(args.config)

    if args.command == 'worker':
        start_worker(
            config.dispatch.redis_url or DEFAULT_REDIS_URL,
            queues=args.queues or [config.dispatch.queue_name],
            burst=args.burst,
        )
        return 0

    handlers = {
        'score': _run_score,
        'batch': _run_batch,
        'check': _run_check,
        'feedback': _run_feedback,
    }
    context = AppContext.build(config)
    try:
        return handlers[args.command](context, args)
    except MatchScoreError as e:
        logger.error(f"{args.command} failed: {type(e).__name__}: {e}")
        return 1
    finally:
        context.close()


if __name__ == "__main__":
    sys.exit(main())
