"""Seed the database with the bundled sample question bank."""
from pathlib import Path

from quiz_tracker.db import get_connection
from quiz_tracker.importer import import_bank, load_question_bank

CONTENT_DIR = Path(__file__).parent / "content"
SAMPLE_BANK = CONTENT_DIR / "sample_bank.yaml"


def is_seeded(db_path: str) -> bool:
    """Check whether the database already holds any topics."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM topics").fetchone()[0]
    conn.close()
    return count > 0


def seed_all(db_path: str) -> None:
    """Load the sample bank on first run."""
    if is_seeded(db_path):
        return
    import_bank(db_path, load_question_bank(str(SAMPLE_BANK)))
