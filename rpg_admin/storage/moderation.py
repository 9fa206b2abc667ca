"""Banned-word list (management.banned_words) with live change notifications."""

import logging

from .core import NotFound, ValidationFailed, connection, notify, transaction

logger = logging.getLogger(__name__)

CHANNEL = "management_banned_words"


def _word(row) -> dict:
    return {"id": row["id"], "word": row["word"], "severity": row["severity"]}


async def get_banned_words() -> list[dict]:
    async with connection() as conn:
        rows = await conn.fetch("SELECT id, word, severity FROM management.banned_words ORDER BY id DESC")
    return [_word(r) for r in rows]


async def add_banned_word(word: str, severity: int | None = None) -> dict:
    word = (word or "").strip()
    if not word:
        raise ValidationFailed("word", "Missing required field: word")
    if severity is None:
        severity = 1
    if severity < 1:
        raise ValidationFailed("severity", "Invalid severity: must be at least 1")

    async with transaction() as conn:
        row = await conn.fetchrow(
            "INSERT INTO management.banned_words (word, severity) VALUES ($1, $2) "
            "RETURNING id, word, severity",
            word,
            severity,
        )
        entry = _word(row)
        await notify(conn, CHANNEL, {"action": "added", **entry})
    logger.info(f"Banned word {entry['id']} added (severity {severity})")
    return entry


async def delete_banned_word(word_id: int) -> dict:
    if not word_id:
        raise ValidationFailed("id", "Missing id")
    async with transaction() as conn:
        row = await conn.fetchrow(
            "DELETE FROM management.banned_words WHERE id = $1 RETURNING id, word, severity",
            word_id,
        )
        if row is None:
            raise NotFound(f"Banned word {word_id} not found")
        entry = _word(row)
        await notify(conn, CHANNEL, {"action": "deleted", **entry})
    logger.info(f"Banned word {word_id} deleted")
    return entry
