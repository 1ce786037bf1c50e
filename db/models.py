SESSION_STATUSES = ("pending", "recording", "processing", "completed", "recovering", "error")
RECORDING_TYPES = ("mic", "tab", "both")

DEFAULT_TITLE = "Untitled Session"
RECOVERED_TITLE = "Recovered Session (No ID)"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS sessions (
    id              TEXT PRIMARY KEY,
    title           TEXT NOT NULL DEFAULT 'Untitled Session',
    user_id         TEXT,
    recording_type  TEXT CHECK (recording_type IN ('mic', 'tab', 'both')),
    status          TEXT NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending', 'recording', 'processing',
                                      'completed', 'recovering', 'error')),
    transcript      TEXT,
    summary         TEXT,
    duration        INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_created_at ON sessions (created_at);
CREATE INDEX IF NOT EXISTS idx_sessions_user_id ON sessions (user_id);
"""

# Columns a finalize step may patch
UPDATABLE_FIELDS = frozenset({"transcript", "summary", "status", "duration"})


def session_to_json(row: dict) -> dict:
    """Map a sessions row to the camelCase shape the UI expects."""
    return {
        "id": row["id"],
        "title": row["title"],
        "userId": row["user_id"],
        "recordingType": row["recording_type"],
        "status": row["status"],
        "transcript": row["transcript"],
        "summary": row["summary"],
        "duration": row["duration"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }
