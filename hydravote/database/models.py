"""Database schema definitions for HydraVote."""

# SQL schema for creating tables

CREATE_AI_PROVIDERS_TABLE = """
CREATE TABLE IF NOT EXISTS ai_providers (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    base_weight REAL NOT NULL DEFAULT 1.0,
    capability TEXT NOT NULL,
    specialty TEXT,
    active INTEGER NOT NULL DEFAULT 1,
    kind TEXT NOT NULL,
    model TEXT,
    base_url TEXT,
    api_key_setting TEXT NOT NULL,
    timeout_seconds REAL NOT NULL DEFAULT 30.0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

CREATE_ANALYSES_TABLE = """
CREATE TABLE IF NOT EXISTS analyses (
    analysis_id TEXT PRIMARY KEY,
    item_name TEXT NOT NULL,
    estimated_value REAL NOT NULL,
    decision TEXT NOT NULL,
    confidence INTEGER NOT NULL,
    total_votes INTEGER NOT NULL,
    quality TEXT NOT NULL,
    category TEXT,
    consensus_metrics TEXT,

    -- Attached later by the ground-truth resolver
    ground_truth_price REAL,
    ground_truth_source TEXT,
    ground_truth_at TIMESTAMP,

    created_at TIMESTAMP NOT NULL
);
"""

CREATE_AI_VOTES_TABLE = """
CREATE TABLE IF NOT EXISTS ai_votes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    analysis_id TEXT NOT NULL,
    provider_id TEXT NOT NULL,
    provider_name TEXT NOT NULL,
    stage TEXT NOT NULL,
    item_name TEXT,
    estimated_value REAL NOT NULL,
    decision TEXT NOT NULL,
    confidence REAL NOT NULL,
    latency_ms INTEGER,
    weight REAL NOT NULL,
    category TEXT,
    raw_response TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(analysis_id, provider_id)
);
"""

CREATE_SCORECARDS_TABLE = """
CREATE TABLE IF NOT EXISTS provider_scorecards_weekly (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    week_start DATE NOT NULL,
    week_end DATE NOT NULL,
    provider_id TEXT NOT NULL,
    provider_name TEXT,
    total_votes INTEGER NOT NULL,
    successful_votes INTEGER NOT NULL,
    mean_absolute_percent_error REAL,
    decision_accuracy REAL,
    composite_score REAL NOT NULL,
    scorecard TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(week_start, provider_id)
);
"""

CREATE_RANKINGS_TABLE = """
CREATE TABLE IF NOT EXISTS competitive_rankings (
    week_start DATE PRIMARY KEY,
    ranking TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

# Indexes for performance
CREATE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_analyses_created ON analyses(created_at);",
    "CREATE INDEX IF NOT EXISTS idx_votes_analysis ON ai_votes(analysis_id);",
    "CREATE INDEX IF NOT EXISTS idx_votes_provider ON ai_votes(provider_id);",
    "CREATE INDEX IF NOT EXISTS idx_scorecards_week ON provider_scorecards_weekly(week_start);",
]

# All table creation statements
ALL_TABLES = [
    CREATE_AI_PROVIDERS_TABLE,
    CREATE_ANALYSES_TABLE,
    CREATE_AI_VOTES_TABLE,
    CREATE_SCORECARDS_TABLE,
    CREATE_RANKINGS_TABLE,
] + CREATE_INDEXES
