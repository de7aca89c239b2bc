"""Database schema and initialization."""
from poker_tracker.db.connection import db
from poker_tracker.ledger.chips import DEFAULT_CHIP_VALUES
from poker_tracker.utils.logger import get_logger

logger = get_logger(__name__)

# SQL schema for all tables (for fresh installs)
SCHEMA = """
-- Players, keyed by computing ID
CREATE TABLE IF NOT EXISTS players (
    computing_id VARCHAR(50) PRIMARY KEY,
    first_name VARCHAR(100) NOT NULL,
    last_name VARCHAR(100) NOT NULL,
    years_of_experience INTEGER,
    level VARCHAR(20),
    major VARCHAR(100),
    total_winnings NUMERIC(12, 2) NOT NULL DEFAULT 0,
    is_admin BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- Session entries (one check-in / check-out pair)
CREATE TABLE IF NOT EXISTS session_entries (
    entry_id SERIAL PRIMARY KEY,
    computing_id VARCHAR(50) NOT NULL REFERENCES players(computing_id) ON DELETE CASCADE,
    session_date DATE NOT NULL,
    start_photo_url TEXT,
    start_chips NUMERIC(12, 2) NOT NULL,
    start_chip_breakdown JSONB NOT NULL DEFAULT '{}',
    end_photo_url TEXT,
    end_chips NUMERIC(12, 2),
    end_chip_breakdown JSONB NOT NULL DEFAULT '{}',
    net_winnings NUMERIC(12, 2),
    is_completed BOOLEAN NOT NULL DEFAULT FALSE,
    admin_override BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_entries_player ON session_entries(computing_id);
CREATE INDEX IF NOT EXISTS idx_entries_date ON session_entries(session_date);

-- At most one open session per player
CREATE UNIQUE INDEX IF NOT EXISTS idx_entries_one_open
    ON session_entries(computing_id) WHERE NOT is_completed;

-- Chip color values
CREATE TABLE IF NOT EXISTS chip_values (
    color VARCHAR(20) PRIMARY KEY,
    value NUMERIC(10, 2) NOT NULL CHECK (value > 0 AND value <= 10000),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- Append-only admin audit trail
CREATE TABLE IF NOT EXISTS audit_logs (
    id SERIAL PRIMARY KEY,
    actor VARCHAR(50) NOT NULL,
    action VARCHAR(50) NOT NULL,
    target_table VARCHAR(50) NOT NULL,
    target_id VARCHAR(50) NOT NULL,
    old_values JSONB,
    new_values JSONB,
    reason TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_audit_created ON audit_logs(created_at);

-- Update trigger for updated_at columns
CREATE OR REPLACE FUNCTION update_updated_at()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = NOW();
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS players_updated_at ON players;
CREATE TRIGGER players_updated_at
    BEFORE UPDATE ON players
    FOR EACH ROW
    EXECUTE FUNCTION update_updated_at();

DROP TRIGGER IF EXISTS entries_updated_at ON session_entries;
CREATE TRIGGER entries_updated_at
    BEFORE UPDATE ON session_entries
    FOR EACH ROW
    EXECUTE FUNCTION update_updated_at();
"""

# Migrations for existing databases
MIGRATIONS = [
    # Migration 1: Add reason column to audit_logs
    """
    DO $$
    BEGIN
        IF NOT EXISTS (
            SELECT 1 FROM information_schema.columns
            WHERE table_name = 'audit_logs' AND column_name = 'reason'
        ) THEN
            ALTER TABLE audit_logs ADD COLUMN reason TEXT;
        END IF;
    END $$;
    """,
    # Migration 2: Add admin_override column to session_entries
    """
    DO $$
    BEGIN
        IF NOT EXISTS (
            SELECT 1 FROM information_schema.columns
            WHERE table_name = 'session_entries' AND column_name = 'admin_override'
        ) THEN
            ALTER TABLE session_entries ADD COLUMN admin_override BOOLEAN NOT NULL DEFAULT FALSE;
        END IF;
    END $$;
    """,
]


async def seed_db() -> None:
    """Insert default chip values and the admin player if missing."""
    for color, value in DEFAULT_CHIP_VALUES.items():
        await db.execute(
            "INSERT INTO chip_values (color, value) VALUES ($1, $2) ON CONFLICT (color) DO NOTHING",
            color, value
        )

    await db.execute(
        """
        INSERT INTO players (
            computing_id, first_name, last_name,
            years_of_experience, level, major, is_admin
        ) VALUES ('admin', 'Admin', 'User', 5, 'Expert', 'Computer Science', TRUE)
        ON CONFLICT (computing_id) DO NOTHING
        """
    )
    logger.info("Default chip values and admin player seeded")


async def init_db() -> None:
    """Initialize database schema, run migrations and seed defaults."""
    logger.info("Initializing database schema...")
    await db.execute(SCHEMA)

    logger.info("Running migrations...")
    for i, migration in enumerate(MIGRATIONS, 1):
        try:
            await db.execute(migration)
            logger.info(f"Migration {i} completed")
        except Exception as e:
            logger.warning(f"Migration {i} skipped or failed: {e}")

    await seed_db()
    logger.info("Database schema initialized")
