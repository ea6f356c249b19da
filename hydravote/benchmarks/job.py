"""Weekly calibration job: score votes, build scorecards and rankings."""

import logging
from datetime import date, timedelta
from typing import Optional

from hydravote.benchmarks.aggregator import aggregate_week, build_competitive_rankings
from hydravote.benchmarks.models import CalibrationReport
from hydravote.benchmarks.scorer import accuracy_summary, score_vote
from hydravote.config import Settings, get_settings
from hydravote.database.repositories import RankingRepository, ScorecardRepository, VoteRepository
from hydravote.utils.helpers import previous_week_start, week_bounds

logger = logging.getLogger(__name__)


class CalibrationJob:
    """Computes and stores one week of provider scorecards and rankings.

    Re-running a week recomputes everything from the stored votes and ground
    truth and overwrites the previous results.
    """

    def __init__(
        self,
        vote_repo: Optional[VoteRepository] = None,
        scorecard_repo: Optional[ScorecardRepository] = None,
        ranking_repo: Optional[RankingRepository] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize job.

        Args:
            vote_repo: Vote repository. If None, uses the default database.
            scorecard_repo: Scorecard repository. If None, uses the default database.
            ranking_repo: Ranking repository. If None, uses the default database.
            settings: Settings. If None, uses the global settings.
        """
        self.vote_repo = vote_repo or VoteRepository()
        self.scorecard_repo = scorecard_repo or ScorecardRepository()
        self.ranking_repo = ranking_repo or RankingRepository()
        self.settings = settings or get_settings()

    def run(self, week_start: Optional[date] = None) -> CalibrationReport:
        """Run calibration for a week.

        Args:
            week_start: Any day of the week to process. If None, the last
                completed Monday-Sunday week.

        Returns:
            Calibration report
        """
        if week_start is None:
            week_start = previous_week_start(date.today())
        week_start, week_end = week_bounds(week_start)

        logger.info(f"Running calibration for week {week_start} - {week_end - timedelta(days=1)}")

        rows = self.vote_repo.get_for_benchmark(week_start, week_end)
        records = [score_vote(row, self.settings.buy_threshold_price) for row in rows]

        scorecards, skipped = aggregate_week(records, week_start, week_end)

        previous = self.ranking_repo.get(week_start - timedelta(days=7))
        ranking = build_competitive_rankings(scorecards, week_start, previous)

        for scorecard in scorecards:
            self.scorecard_repo.upsert(scorecard)
            logger.info(
                f"{scorecard.provider_name}: composite {scorecard.composite_score:.1f}, "
                + accuracy_summary(
                    scorecard.mean_absolute_percent_error,
                    scorecard.accuracy_rate_10,
                    scorecard.successful_votes,
                )
            )
        if scorecards:
            self.ranking_repo.upsert(ranking)

        logger.info(
            f"Calibration complete: {len(records)} votes, {len(scorecards)} scorecards, "
            f"{len(skipped)} providers skipped"
        )

        return CalibrationReport(
            week_start=week_start,
            week_end=week_end,
            records=len(records),
            scorecards=scorecards,
            ranking=ranking if scorecards else None,
            skipped_providers=skipped,
        )
