"""
SQLite-based storage for per-image threshold settings and app preferences.
"""

import sqlite3
import json
from pathlib import Path
from typing import Optional

from processing import DEFAULT_ALPHA_CUTOFF, DEFAULT_LUMINANCE_THRESHOLD, ThresholdParams

# Database location
DB_DIR = Path.home() / ".config" / "signature-refiner"
DB_FILE = DB_DIR / "settings.db"


class Storage:
    """SQLite storage for per-image settings and preferences."""

    def __init__(self, db_path: Path = None):
        self.db_path = Path(db_path) if db_path else DB_FILE
        self._ensure_dir()
        self._init_db()

    def _ensure_dir(self):
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _init_db(self):
        """Initialize the database schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS images (
                    hash TEXT PRIMARY KEY,
                    settings TEXT,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            # App-wide preferences table
            conn.execute("""
                CREATE TABLE IF NOT EXISTS preferences (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)
            conn.commit()

    def save_settings(self, image_hash: str, settings: dict):
        """Save settings for an image."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                INSERT INTO images (hash, settings, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(hash) DO UPDATE SET
                    settings = excluded.settings,
                    updated_at = CURRENT_TIMESTAMP
            """, (image_hash, json.dumps(settings)))
            conn.commit()

    def load_settings(self, image_hash: str) -> Optional[dict]:
        """Load settings for an image. Returns None if not found."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "SELECT settings FROM images WHERE hash = ?",
                (image_hash,)
            )
            row = cursor.fetchone()
            if row and row[0]:
                return json.loads(row[0])
            return None

    def save_params(self, image_hash: str, params: ThresholdParams):
        """Remember the thresholds last used for an image."""
        self.save_settings(image_hash, {
            'luminance_threshold': params.luminance_threshold,
            'alpha_cutoff': params.alpha_cutoff,
        })

    def load_params(self, image_hash: str) -> Optional[ThresholdParams]:
        """Thresholds saved for an image, or None if it was never refined."""
        settings = self.load_settings(image_hash)
        if not settings:
            return None
        defaults = self.get_default_params()
        return ThresholdParams(
            luminance_threshold=settings.get('luminance_threshold', defaults.luminance_threshold),
            alpha_cutoff=settings.get('alpha_cutoff', defaults.alpha_cutoff),
        ).clamped()

    def clear_all(self):
        """Clear all stored image settings."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM images")
            conn.commit()

    def get_stats(self) -> dict:
        """Get storage statistics."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute("SELECT COUNT(*) FROM images")
            row = cursor.fetchone()
            return {
                'image_count': row[0] or 0,
            }

    def _get_preference(self, key: str, default):
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "SELECT value FROM preferences WHERE key = ?",
                (key,)
            )
            row = cursor.fetchone()
            if row and row[0]:
                return json.loads(row[0])
            return default

    def _set_preference(self, key: str, value):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                INSERT INTO preferences (key, value)
                VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """, (key, json.dumps(value)))
            conn.commit()

    def get_default_params(self) -> ThresholdParams:
        """Thresholds applied to images without saved settings."""
        return ThresholdParams(
            luminance_threshold=self._get_preference('default_luminance_threshold',
                                                     DEFAULT_LUMINANCE_THRESHOLD),
            alpha_cutoff=self._get_preference('default_alpha_cutoff', DEFAULT_ALPHA_CUTOFF),
        ).clamped()

    def set_default_params(self, params: ThresholdParams):
        """Save the thresholds new images start with."""
        params = params.clamped()
        self._set_preference('default_luminance_threshold', params.luminance_threshold)
        self._set_preference('default_alpha_cutoff', params.alpha_cutoff)

    def get_last_open_dir(self) -> str:
        """Directory of the last opened image. Defaults to the home directory."""
        return self._get_preference('last_open_dir', str(Path.home()))

    def set_last_open_dir(self, directory: str):
        self._set_preference('last_open_dir', str(directory))


# Global storage instance
_storage = None


def get_storage() -> Storage:
    """Get the global storage instance."""
    global _storage
    if _storage is None:
        _storage = Storage()
    return _storage
