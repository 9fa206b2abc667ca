"""Approval toggling and the atomic pending -> live merge."""

import logging
from dataclasses import dataclass, field

from .content import ContentType
from .core import NotFound, transaction

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    inserted: int = 0
    updated: int = 0
    skipped: list[int] = field(default_factory=list)  # tooling ids of orphaned updates


async def toggle_approve(ct: ContentType, tooling_id: int) -> bool:
    """Flip the approved flag on a pending row and return the new value."""
    async with transaction() as conn:
        approved = await conn.fetchval(
            f"UPDATE {ct.pending_table} SET approved = NOT approved "
            "WHERE tooling_id = $1 RETURNING approved",
            tooling_id,
        )
    if approved is None:
        raise NotFound(f"Pending {ct.name} {tooling_id} not found")
    return approved


async def remove_pending(ct: ContentType, tooling_id: int) -> None:
    """Discard a pending row. The live row is untouched."""
    async with transaction() as conn:
        removed = await conn.fetchval(
            f"DELETE FROM {ct.pending_table} WHERE tooling_id = $1 RETURNING tooling_id",
            tooling_id,
        )
    if removed is None:
        raise NotFound(f"Pending {ct.name} {tooling_id} not found")


async def merge(ct: ContentType) -> MergeResult:
    """Promote every approved pending row into the live table.

    Rows apply in tooling_id order inside one transaction, so the latest
    edit of a record wins and any failure leaves the live table untouched.
    An update whose live row has disappeared is skipped and its pending row
    dropped.
    """
    columns = ct.columns
    col_list = ", ".join(columns)
    n = len(columns)
    insert_sql = (
        f"INSERT INTO {ct.live_table} ({col_list}, version) "
        f"VALUES ({', '.join(f'${i}' for i in range(1, n + 1))}, ${n + 1}) "
        f"RETURNING {ct.id_column}"
    )
    update_sql = (
        f"UPDATE {ct.live_table} SET "
        + ", ".join(f"{c} = ${i}" for i, c in enumerate(columns, start=1))
        + f", version = version + 1 WHERE {ct.id_column} = ${n + 1} "
        f"RETURNING {ct.id_column}"
    )
    delete_sql = f"DELETE FROM {ct.pending_table} WHERE tooling_id = $1"

    result = MergeResult()
    async with transaction() as conn:
        rows = await conn.fetch(
            f"SELECT tooling_id, game_id, action, version, {col_list} "
            f"FROM {ct.pending_table} WHERE approved ORDER BY tooling_id FOR UPDATE"
        )
        for row in rows:
            values = [row[c] for c in columns]
            if row["action"] == "insert":
                game_id = await conn.fetchval(insert_sql, *values, (row["version"] or 0) + 1)
                result.inserted += 1
                logger.debug(f"{ct.name} tooling_id={row['tooling_id']} inserted as {game_id}")
            else:
                game_id = await conn.fetchval(update_sql, *values, row["game_id"])
                if game_id is None:
                    logger.warning(
                        f"Skipping {ct.name} tooling_id={row['tooling_id']}: "
                        f"live row {row['game_id']} no longer exists"
                    )
                    result.skipped.append(row["tooling_id"])
                else:
                    result.updated += 1
            await conn.execute(delete_sql, row["tooling_id"])

    logger.info(
        f"Merged {ct.plural}: {result.inserted} inserted, {result.updated} updated, "
        f"{len(result.skipped)} skipped"
    )
    return result
