from __future__ import annotations

import sqlite3
from contextlib import closing
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path

MAX_LATEST = 100

_COLUMNS = "id, timestamp, content, location, activity, image_url"


@dataclass(frozen=True)
class BlogPost:
    timestamp: datetime
    content: str
    location: str
    activity: str
    image_url: str
    id: int | None = None

    @classmethod
    def now(cls, content: str, location: str, activity: str, image_url: str) -> "BlogPost":
        return cls(
            timestamp=datetime.now(timezone.utc),
            content=content,
            location=location,
            activity=activity,
            image_url=image_url,
        )


def _row_to_post(row: sqlite3.Row) -> BlogPost:
    return BlogPost(
        id=row["id"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
        content=row["content"],
        location=row["location"],
        activity=row["activity"],
        image_url=row["image_url"],
    )


class BlogStore:
    """
    SQLite-backed blog post storage.

    Every operation opens its own connection, so one store can be shared by the
    scheduler and command handlers (each running the call in a worker thread).
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init(self) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS blog_posts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    content TEXT NOT NULL,
                    location TEXT NOT NULL,
                    activity TEXT NOT NULL,
                    image_url TEXT NOT NULL
                )
                """
            )

    def save(self, post: BlogPost) -> int:
        with closing(self._connect()) as conn, conn:
            cur = conn.execute(
                "INSERT INTO blog_posts (timestamp, content, location, activity, image_url) "
                "VALUES (?, ?, ?, ?, ?)",
                (post.timestamp.isoformat(), post.content, post.location, post.activity, post.image_url),
            )
            return int(cur.lastrowid)

    def get(self, post_id: int) -> BlogPost | None:
        with closing(self._connect()) as conn:
            row = conn.execute(f"SELECT {_COLUMNS} FROM blog_posts WHERE id = ?", (post_id,)).fetchone()
        return _row_to_post(row) if row else None

    def latest(self, n: int = 5) -> list[BlogPost]:
        limit = max(0, min(n, MAX_LATEST))
        with closing(self._connect()) as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM blog_posts ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [_row_to_post(r) for r in rows]

    def random(self) -> BlogPost | None:
        with closing(self._connect()) as conn:
            row = conn.execute(f"SELECT {_COLUMNS} FROM blog_posts ORDER BY RANDOM() LIMIT 1").fetchone()
        return _row_to_post(row) if row else None


def with_id(post: BlogPost, post_id: int) -> BlogPost:
    return replace(post, id=post_id)
