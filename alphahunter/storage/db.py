import json
import logging
import re
from pathlib import Path
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional

import aiosqlite

from alphahunter.models import Opportunity, OpportunityStatus, PredictionResult, to_utc_iso

logger = logging.getLogger(__name__)

UPSERT_CREATED = "created"
UPSERT_UPDATED = "updated"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def question_key(question: str) -> str:
    """Normalize a question so trivially different phrasings share a cache row."""
    text = re.sub(r"\s+", " ", (question or "").strip().lower())
    return text.rstrip("?.! ")


class DatabaseManager:
    """
    Manages the SQLite database for opportunities and cached predictions.

    Supports:
    - WAL mode for better concurrency
    - Simple schema migrations
    - Transactional opportunity upserts keyed by market identity
    - Latest-prediction cache used as a prior when evidence is missing
    """

    def __init__(self, db_path: str = "data/alphahunter.db"):
        self.db_path = db_path
        self.initialized = False

    async def initialize(self):
        """Initialize database, enable WAL, and run migrations."""
        if self.initialized:
            return

        db_path = Path(self.db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self.db_path) as db:
            # Enable WAL mode for better concurrency
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute("PRAGMA synchronous=NORMAL;")

            await db.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
            """)

            await self._run_migrations(db)

        self.initialized = True
        logger.info(f"✅ Database initialized at {self.db_path}")

    def connect(self, **kwargs):
        """Get an aiosqlite connection context manager."""
        return aiosqlite.connect(self.db_path, timeout=30.0, **kwargs)

    async def _run_migrations(self, db: aiosqlite.Connection):
        """Run pending schema migrations."""
        async with db.execute("SELECT MAX(version) FROM schema_version") as cursor:
            row = await cursor.fetchone()
            current_version = row[0] if row and row[0] is not None else 0

        # Version 1: Opportunities with at most one Active row per market
        # Version 2: Prediction cache
        # Version 3: Resolution dates for expiring opportunities
        migrations = [
            # Version 1
            """
            CREATE TABLE IF NOT EXISTS opportunities (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                market_key TEXT NOT NULL,
                platform TEXT NOT NULL,
                market_id TEXT NOT NULL,
                question TEXT NOT NULL,
                market_price REAL NOT NULL,
                estimated_true_probability REAL NOT NULL,
                edge REAL NOT NULL,
                expected_value REAL NOT NULL,
                confidence_score REAL NOT NULL,
                kelly_fraction REAL NOT NULL,
                recommended_action TEXT NOT NULL,
                reasoning TEXT,
                data_sources_json TEXT NOT NULL DEFAULT '[]',
                risk_factors_json TEXT NOT NULL DEFAULT '[]',
                is_high_edge INTEGER NOT NULL DEFAULT 0,
                status TEXT NOT NULL DEFAULT 'Active',
                url TEXT,
                category TEXT,
                created_at_utc TEXT NOT NULL,
                updated_at_utc TEXT NOT NULL,
                closed_at_utc TEXT
            );
            CREATE UNIQUE INDEX IF NOT EXISTS idx_opportunities_active_market
            ON opportunities(market_key) WHERE status = 'Active';
            CREATE INDEX IF NOT EXISTS idx_opportunities_status_edge
            ON opportunities(status, edge DESC);
            """,
            # Version 2
            """
            CREATE TABLE IF NOT EXISTS prediction_cache (
                question_key TEXT PRIMARY KEY,
                question TEXT NOT NULL,
                probability REAL NOT NULL,
                confidence_score REAL NOT NULL,
                data_quality TEXT NOT NULL,
                payload_json TEXT NOT NULL,
                predicted_at_utc TEXT NOT NULL
            );
            """,
            # Version 3
            """
            ALTER TABLE opportunities ADD COLUMN resolution_date_utc TEXT;
            CREATE INDEX IF NOT EXISTS idx_opportunities_status_resolution
            ON opportunities(status, resolution_date_utc);
            """,
        ]

        for i, sql in enumerate(migrations):
            version = i + 1
            if version > current_version:
                logger.info(f"Applying migration version {version}...")
                try:
                    await db.executescript(sql)
                    await db.execute(
                        "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                        (version, _utc_now())
                    )
                    await db.commit()
                    logger.info(f"✅ Applied migration version {version}")
                except Exception as e:
                    logger.error(f"❌ Failed to apply migration version {version}: {e}")
                    raise

    # ========================================================================
    # OPPORTUNITIES
    # ========================================================================

    async def upsert_opportunity(self, opp: Opportunity, create: bool = True) -> Optional[str]:
        """
        Create or refresh the Active opportunity for a market.

        The read and the write share one BEGIN IMMEDIATE transaction, so two
        writers can never both insert an Active row for the same market.
        Closed rows are never touched; a market whose previous opportunity
        was closed gets a fresh Active row.

        Args:
            opp: Scored opportunity
            create: Insert a new Active row when none exists; with False only
                an existing Active row is refreshed

        Returns:
            "created", "updated", or None when create is False and the market
            has no Active row
        """
        now = _utc_now()
        values = (
            opp.question,
            opp.market_price,
            opp.estimated_true_probability,
            opp.edge,
            opp.expected_value,
            opp.confidence_score,
            opp.kelly_fraction,
            opp.recommended_action.value,
            opp.reasoning,
            json.dumps(list(opp.data_sources)),
            json.dumps(list(opp.risk_factors)),
            int(opp.is_high_edge),
            opp.url,
            opp.category,
            opp.resolution_date,
        )

        async with self.connect(isolation_level=None) as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                cursor = await db.execute(
                    """
                    UPDATE opportunities SET
                        question = ?, market_price = ?, estimated_true_probability = ?,
                        edge = ?, expected_value = ?, confidence_score = ?, kelly_fraction = ?,
                        recommended_action = ?, reasoning = ?, data_sources_json = ?,
                        risk_factors_json = ?, is_high_edge = ?, url = ?, category = ?,
                        resolution_date_utc = ?, updated_at_utc = ?
                    WHERE market_key = ? AND status = 'Active'
                    """,
                    values + (now, opp.market_key),
                )
                if cursor.rowcount > 0:
                    outcome = UPSERT_UPDATED
                elif not create:
                    outcome = None
                else:
                    await db.execute(
                        """
                        INSERT INTO opportunities (
                            question, market_price, estimated_true_probability, edge,
                            expected_value, confidence_score, kelly_fraction, recommended_action,
                            reasoning, data_sources_json, risk_factors_json, is_high_edge, url,
                            category, resolution_date_utc, market_key, platform, market_id, status,
                            created_at_utc, updated_at_utc
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'Active', ?, ?)
                        """,
                        values + (opp.market_key, opp.platform, opp.market_id, now, now),
                    )
                    outcome = UPSERT_CREATED
                await db.execute("COMMIT")
            except Exception:
                await db.execute("ROLLBACK")
                raise

        logger.debug(f"Opportunity {opp.market_key} {outcome or 'not active, skipped'}")
        return outcome

    async def get_active_opportunities(
        self,
        platform: Optional[str] = None,
        min_abs_edge: float = 0.0,
        limit: Optional[int] = None,
    ) -> List[Opportunity]:
        """Active opportunities, largest edge first."""
        query = "SELECT * FROM opportunities WHERE status = 'Active'"
        params: List[Any] = []
        if platform:
            query += " AND platform = ?"
            params.append(platform.strip().lower())
        if min_abs_edge > 0:
            query += " AND ABS(edge) >= ?"
            params.append(min_abs_edge)
        query += " ORDER BY edge DESC"
        if limit:
            query += " LIMIT ?"
            params.append(max(1, int(limit)))

        async with self.connect() as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(query, tuple(params)) as cursor:
                rows = await cursor.fetchall()
                return [self._row_to_opportunity(row) for row in rows]

    async def get_opportunity(self, market_key: str) -> Optional[Opportunity]:
        """Current opportunity for a market: the Active row, else the latest closed one."""
        async with self.connect() as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT * FROM opportunities WHERE market_key = ?
                ORDER BY (status = 'Active') DESC, updated_at_utc DESC, id DESC
                LIMIT 1
                """,
                (market_key,),
            ) as cursor:
                row = await cursor.fetchone()
                return self._row_to_opportunity(row) if row else None

    async def close_opportunity(self, market_key: str) -> bool:
        """
        Close the Active opportunity for a market.

        Returns:
            True if a row was closed, False if none was active
        """
        now = _utc_now()
        async with self.connect() as db:
            cursor = await db.execute(
                """
                UPDATE opportunities SET status = 'Closed', closed_at_utc = ?, updated_at_utc = ?
                WHERE market_key = ? AND status = 'Active'
                """,
                (now, now, market_key),
            )
            await db.commit()
            closed = cursor.rowcount > 0

        if closed:
            logger.info(f"🔒 Closed opportunity {market_key}")
        return closed

    async def expire_opportunities(self, now: Optional[datetime] = None) -> List[str]:
        """
        Close every Active opportunity whose market has passed its resolution date.

        Rows without a resolution date are left alone.

        Returns:
            Market keys of the opportunities that were closed
        """
        cutoff = to_utc_iso(now or datetime.now(timezone.utc))
        closed_at = _utc_now()

        async with self.connect(isolation_level=None) as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                async with db.execute(
                    """
                    SELECT market_key FROM opportunities
                    WHERE status = 'Active' AND resolution_date_utc IS NOT NULL
                      AND resolution_date_utc <= ?
                    ORDER BY resolution_date_utc
                    """,
                    (cutoff,),
                ) as cursor:
                    expired = [row[0] for row in await cursor.fetchall()]
                if expired:
                    await db.executemany(
                        """
                        UPDATE opportunities SET status = 'Closed', closed_at_utc = ?, updated_at_utc = ?
                        WHERE market_key = ? AND status = 'Active'
                        """,
                        [(closed_at, closed_at, key) for key in expired],
                    )
                await db.execute("COMMIT")
            except Exception:
                await db.execute("ROLLBACK")
                raise

        if expired:
            logger.info(f"🧹 Expired {len(expired)} opportunities past their resolution date")
        return expired

    @staticmethod
    def _row_to_opportunity(row: aiosqlite.Row) -> Opportunity:
        return Opportunity(
            platform=row['platform'],
            market_id=row['market_id'],
            question=row['question'],
            market_price=row['market_price'],
            estimated_true_probability=row['estimated_true_probability'],
            edge=row['edge'],
            expected_value=row['expected_value'],
            confidence_score=row['confidence_score'],
            kelly_fraction=row['kelly_fraction'],
            recommended_action=row['recommended_action'],
            reasoning=row['reasoning'] or "",
            data_sources=json.loads(row['data_sources_json'] or "[]"),
            risk_factors=json.loads(row['risk_factors_json'] or "[]"),
            is_high_edge=bool(row['is_high_edge']),
            status=OpportunityStatus(row['status']),
            url=row['url'] or "",
            category=row['category'] or "other",
            resolution_date=row['resolution_date_utc'],
            created_at=row['created_at_utc'],
            updated_at=row['updated_at_utc'],
            closed_at=row['closed_at_utc'],
        )

    # ========================================================================
    # PREDICTION CACHE
    # ========================================================================

    async def save_prediction(self, question: str, result: PredictionResult) -> None:
        """Store the latest prediction for a question (one row per normalized question)."""
        async with self.connect() as db:
            await db.execute(
                """
                INSERT INTO prediction_cache (
                    question_key, question, probability, confidence_score,
                    data_quality, payload_json, predicted_at_utc
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(question_key) DO UPDATE SET
                    question=excluded.question,
                    probability=excluded.probability,
                    confidence_score=excluded.confidence_score,
                    data_quality=excluded.data_quality,
                    payload_json=excluded.payload_json,
                    predicted_at_utc=excluded.predicted_at_utc
                """,
                (
                    question_key(question),
                    question,
                    result.probability,
                    result.confidence_score,
                    result.data_quality,
                    json.dumps(result.to_dict()),
                    result.timestamp or _utc_now(),
                ),
            )
            await db.commit()

    async def get_cached_prediction(self, question: str) -> Optional[Dict[str, Any]]:
        """Latest stored prediction payload for a question, if any."""
        async with self.connect() as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT payload_json FROM prediction_cache WHERE question_key = ?",
                (question_key(question),),
            ) as cursor:
                row = await cursor.fetchone()
                return json.loads(row['payload_json']) if row else None

    async def get_cached_prior(self, question: str) -> Optional[float]:
        """Probability from the latest stored prediction, usable as a prior."""
        async with self.connect() as db:
            async with db.execute(
                "SELECT probability FROM prediction_cache WHERE question_key = ?",
                (question_key(question),),
            ) as cursor:
                row = await cursor.fetchone()
                return float(row[0]) if row else None
