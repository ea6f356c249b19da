"""Data access layer for HydraVote database operations."""

import json
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from hydravote.benchmarks.models import CompetitiveRanking, WeeklyScorecard
from hydravote.database.db import get_db
from hydravote.engine.models import ConsensusResult, ModelVote
from hydravote.exceptions import AnalysisNotFoundError
from hydravote.providers.models import ProviderConfig


def to_db_timestamp(value: datetime) -> str:
    """Format a datetime as a sortable UTC timestamp string."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%d %H:%M:%S")


def _day_start(value: date) -> str:
    return f"{value.isoformat()} 00:00:00"


class ProviderRepository:
    """Repository for provider configuration operations."""

    def __init__(self, db=None):
        """Initialize repository with database connection."""
        self.db = db or get_db()

    def upsert(self, config: ProviderConfig) -> None:
        """Create or update a provider configuration."""
        cursor = self.db.conn.cursor()
        cursor.execute(
            """
            INSERT INTO ai_providers (
                id, name, base_weight, capability, specialty, active,
                kind, model, base_url, api_key_setting, timeout_seconds
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                base_weight = excluded.base_weight,
                capability = excluded.capability,
                specialty = excluded.specialty,
                active = excluded.active,
                kind = excluded.kind,
                model = excluded.model,
                base_url = excluded.base_url,
                api_key_setting = excluded.api_key_setting,
                timeout_seconds = excluded.timeout_seconds,
                updated_at = CURRENT_TIMESTAMP
            """,
            (
                config.id,
                config.name,
                config.base_weight,
                config.capability.value,
                config.specialty,
                int(config.active),
                config.kind,
                config.model,
                config.base_url,
                config.api_key_setting,
                config.timeout_seconds,
            ),
        )
        self.db.conn.commit()

    def get_all(self, active_only: bool = False) -> List[ProviderConfig]:
        """Get stored provider configurations, highest base weight first."""
        cursor = self.db.conn.cursor()
        query = "SELECT * FROM ai_providers"
        if active_only:
            query += " WHERE active = 1"
        query += " ORDER BY base_weight DESC, id"
        cursor.execute(query)

        return [
            ProviderConfig(
                id=row["id"],
                name=row["name"],
                base_weight=row["base_weight"],
                capability=row["capability"],
                specialty=row["specialty"],
                active=bool(row["active"]),
                kind=row["kind"],
                model=row["model"],
                base_url=row["base_url"],
                api_key_setting=row["api_key_setting"],
                timeout_seconds=row["timeout_seconds"],
            )
            for row in cursor.fetchall()
        ]


class VoteRepository:
    """Repository for provider vote operations."""

    def __init__(self, db=None):
        """Initialize repository with database connection."""
        self.db = db or get_db()

    def upsert(self, analysis_id: str, vote: ModelVote) -> None:
        """Store a vote. A second write for the same provider and analysis replaces the first."""
        raw_json = vote.raw_response.model_dump_json() if vote.raw_response else None

        cursor = self.db.conn.cursor()
        cursor.execute(
            """
            INSERT INTO ai_votes (
                analysis_id, provider_id, provider_name, stage, item_name,
                estimated_value, decision, confidence, latency_ms, weight,
                category, raw_response
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(analysis_id, provider_id) DO UPDATE SET
                provider_name = excluded.provider_name,
                stage = excluded.stage,
                item_name = excluded.item_name,
                estimated_value = excluded.estimated_value,
                decision = excluded.decision,
                confidence = excluded.confidence,
                latency_ms = excluded.latency_ms,
                weight = excluded.weight,
                category = excluded.category,
                raw_response = excluded.raw_response
            """,
            (
                analysis_id,
                vote.provider_id,
                vote.provider_name,
                vote.stage.value,
                vote.item_name,
                vote.estimated_value,
                vote.decision,
                vote.confidence,
                vote.latency_ms,
                vote.weight,
                vote.category,
                raw_json,
            ),
        )
        self.db.conn.commit()

    def get_by_analysis(self, analysis_id: str) -> List[Dict[str, Any]]:
        """Get all votes for an analysis."""
        cursor = self.db.conn.cursor()
        cursor.execute(
            "SELECT * FROM ai_votes WHERE analysis_id = ? ORDER BY weight DESC, provider_id",
            (analysis_id,),
        )
        results = []
        for row in cursor.fetchall():
            result = dict(row)
            if result["raw_response"]:
                result["raw_response"] = json.loads(result["raw_response"])
            results.append(result)
        return results

    def get_for_benchmark(self, week_start: date, week_end: date) -> List[Dict[str, Any]]:
        """Get votes joined with their analysis for a week.

        Args:
            week_start: First day of the week (inclusive)
            week_end: Day after the last day of the week (exclusive)

        Returns:
            One row per vote, with the analysis' ground truth and category
        """
        cursor = self.db.conn.cursor()
        cursor.execute(
            """
            SELECT
                v.analysis_id, v.provider_id, v.provider_name, v.stage,
                v.estimated_value, v.decision, v.confidence, v.latency_ms,
                COALESCE(a.category, v.category) AS category,
                a.ground_truth_price
            FROM ai_votes v
            JOIN analyses a ON a.analysis_id = v.analysis_id
            WHERE a.created_at >= ? AND a.created_at < ?
            ORDER BY v.provider_id, a.created_at, v.analysis_id
            """,
            (_day_start(week_start), _day_start(week_end)),
        )
        return [dict(row) for row in cursor.fetchall()]


class AnalysisRepository:
    """Repository for analysis and consensus operations."""

    def __init__(self, db=None):
        """Initialize repository with database connection."""
        self.db = db or get_db()

    def create_or_update(
        self,
        analysis_id: str,
        consensus: ConsensusResult,
        created_at: Optional[datetime] = None,
    ) -> None:
        """Store the consensus for an analysis.

        Ground-truth columns are never touched here.
        """
        created_at = created_at or datetime.now(timezone.utc)

        cursor = self.db.conn.cursor()
        cursor.execute(
            """
            INSERT INTO analyses (
                analysis_id, item_name, estimated_value, decision, confidence,
                total_votes, quality, category, consensus_metrics, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(analysis_id) DO UPDATE SET
                item_name = excluded.item_name,
                estimated_value = excluded.estimated_value,
                decision = excluded.decision,
                confidence = excluded.confidence,
                total_votes = excluded.total_votes,
                quality = excluded.quality,
                category = excluded.category,
                consensus_metrics = excluded.consensus_metrics
            """,
            (
                analysis_id,
                consensus.item_name,
                consensus.estimated_value,
                consensus.decision,
                consensus.confidence,
                consensus.total_votes,
                consensus.quality.value,
                consensus.category,
                consensus.metrics.model_dump_json(),
                to_db_timestamp(created_at),
            ),
        )
        self.db.conn.commit()

    def get(self, analysis_id: str) -> Optional[Dict[str, Any]]:
        """Get analysis by ID."""
        cursor = self.db.conn.cursor()
        cursor.execute("SELECT * FROM analyses WHERE analysis_id = ?", (analysis_id,))
        row = cursor.fetchone()

        if row is None:
            return None

        result = dict(row)
        if result["consensus_metrics"]:
            result["consensus_metrics"] = json.loads(result["consensus_metrics"])
        return result

    def get_recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Get the most recent analyses."""
        cursor = self.db.conn.cursor()
        cursor.execute(
            "SELECT * FROM analyses ORDER BY created_at DESC LIMIT ?",
            (limit,),
        )
        return [dict(row) for row in cursor.fetchall()]

    def attach_ground_truth(self, analysis_id: str, price: float, source: str = "manual") -> None:
        """Attach an externally resolved market price to an analysis.

        Args:
            analysis_id: Analysis ID
            price: Authoritative market price
            source: Where the price came from

        Raises:
            ValueError: If price is negative
            AnalysisNotFoundError: If the analysis does not exist
        """
        if price < 0:
            raise ValueError(f"Invalid ground truth price: {price}")

        cursor = self.db.conn.cursor()
        cursor.execute(
            """
            UPDATE analyses
            SET ground_truth_price = ?, ground_truth_source = ?, ground_truth_at = ?
            WHERE analysis_id = ?
            """,
            (price, source, to_db_timestamp(datetime.now(timezone.utc)), analysis_id),
        )
        self.db.conn.commit()

        if cursor.rowcount == 0:
            raise AnalysisNotFoundError(f"Analysis not found: {analysis_id}")


class ScorecardRepository:
    """Repository for weekly provider scorecards."""

    def __init__(self, db=None):
        """Initialize repository with database connection."""
        self.db = db or get_db()

    def upsert(self, scorecard: WeeklyScorecard) -> None:
        """Store a scorecard, replacing any earlier one for the same provider and week."""
        cursor = self.db.conn.cursor()
        cursor.execute(
            """
            INSERT INTO provider_scorecards_weekly (
                week_start, week_end, provider_id, provider_name, total_votes,
                successful_votes, mean_absolute_percent_error, decision_accuracy,
                composite_score, scorecard
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(week_start, provider_id) DO UPDATE SET
                week_end = excluded.week_end,
                provider_name = excluded.provider_name,
                total_votes = excluded.total_votes,
                successful_votes = excluded.successful_votes,
                mean_absolute_percent_error = excluded.mean_absolute_percent_error,
                decision_accuracy = excluded.decision_accuracy,
                composite_score = excluded.composite_score,
                scorecard = excluded.scorecard,
                updated_at = CURRENT_TIMESTAMP
            """,
            (
                scorecard.week_start.isoformat(),
                scorecard.week_end.isoformat(),
                scorecard.provider_id,
                scorecard.provider_name,
                scorecard.total_votes,
                scorecard.successful_votes,
                scorecard.mean_absolute_percent_error,
                scorecard.decision_accuracy,
                scorecard.composite_score,
                scorecard.model_dump_json(),
            ),
        )
        self.db.conn.commit()

    def get_week(self, week_start: date) -> List[WeeklyScorecard]:
        """Get all scorecards for a week, ordered by provider ID."""
        cursor = self.db.conn.cursor()
        cursor.execute(
            """
            SELECT scorecard FROM provider_scorecards_weekly
            WHERE week_start = ?
            ORDER BY provider_id
            """,
            (week_start.isoformat(),),
        )
        return [WeeklyScorecard.model_validate_json(row["scorecard"]) for row in cursor.fetchall()]

    def get_recent_weeks(self, weeks: int, as_of: Optional[date] = None) -> List[WeeklyScorecard]:
        """Get scorecards from the most recent weeks.

        Args:
            weeks: Number of distinct weeks to include
            as_of: Only weeks starting on or before this day. If None, all weeks.

        Returns:
            Scorecards ordered by week (oldest first), then provider ID
        """
        cursor = self.db.conn.cursor()
        cutoff = (as_of or date.max).isoformat()
        cursor.execute(
            """
            SELECT scorecard FROM provider_scorecards_weekly
            WHERE week_start IN (
                SELECT DISTINCT week_start FROM provider_scorecards_weekly
                WHERE week_start <= ?
                ORDER BY week_start DESC
                LIMIT ?
            )
            ORDER BY week_start, provider_id
            """,
            (cutoff, weeks),
        )
        return [WeeklyScorecard.model_validate_json(row["scorecard"]) for row in cursor.fetchall()]


class RankingRepository:
    """Repository for weekly competitive rankings."""

    def __init__(self, db=None):
        """Initialize repository with database connection."""
        self.db = db or get_db()

    def upsert(self, ranking: CompetitiveRanking) -> None:
        """Store the ranking for a week."""
        cursor = self.db.conn.cursor()
        cursor.execute(
            """
            INSERT INTO competitive_rankings (week_start, ranking)
            VALUES (?, ?)
            ON CONFLICT(week_start) DO UPDATE SET
                ranking = excluded.ranking,
                updated_at = CURRENT_TIMESTAMP
            """,
            (ranking.week_start.isoformat(), ranking.model_dump_json()),
        )
        self.db.conn.commit()

    def get(self, week_start: date) -> Optional[CompetitiveRanking]:
        """Get the ranking for a week."""
        cursor = self.db.conn.cursor()
        cursor.execute(
            "SELECT ranking FROM competitive_rankings WHERE week_start = ?",
            (week_start.isoformat(),),
        )
        row = cursor.fetchone()

        if row is None:
            return None

        return CompetitiveRanking.model_validate_json(row["ranking"])
