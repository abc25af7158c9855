"""Repository for stored files: per-email attachments and the asset library.

Rows only describe objects; the bytes live in the storage bucket.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import delete, func, insert, select
from sqlalchemy.engine import Engine, Row

from piano_crm.db.schema import assets, attachments, students
from piano_crm.exceptions import NotFoundError
from piano_crm.models import Asset, Attachment
from piano_crm.repository._common import aware, new_id, now


def _row_to_attachment(r: Row) -> Attachment:
    return Attachment(
        id=r.id,
        student_id=r.student_id,
        file_name=r.file_name,
        file_type=r.file_type,
        file_size=int(r.file_size),
        storage_path=r.storage_path,
        created_at=aware(r.created_at),
    )


def _row_to_asset(r: Row) -> Asset:
    return Asset(
        id=r.id,
        file_name=r.file_name,
        file_type=r.file_type,
        file_size=int(r.file_size),
        storage_path=r.storage_path,
        public_url=r.public_url,
        created_at=aware(r.created_at),
    )


def create_attachment(
    engine: Engine,
    *,
    student_id: str,
    file_name: str,
    file_type: str,
    file_size: int,
    storage_path: str,
) -> Attachment:
    row = {
        "id": new_id(),
        "student_id": student_id,
        "file_name": file_name,
        "file_type": file_type or "application/octet-stream",
        "file_size": int(file_size),
        "storage_path": storage_path,
        "created_at": now(),
    }
    with engine.begin() as conn:
        if not conn.execute(select(students.c.id).where(students.c.id == student_id)).fetchone():
            raise NotFoundError(f"Unknown student_id: {student_id}")
        conn.execute(insert(attachments).values(**row))
    return Attachment(**row)


def list_attachments(engine: Engine, student_id: str) -> list[Attachment]:
    q = (
        select(attachments)
        .where(attachments.c.student_id == student_id)
        .order_by(attachments.c.created_at.asc())
    )
    with engine.begin() as conn:
        rows = conn.execute(q).fetchall()
    return [_row_to_attachment(r) for r in rows]


def get_attachments(engine: Engine, attachment_ids: Sequence[str]) -> list[Attachment]:
    """Fetch attachments by id, preserving the requested order."""

    ids = [i for i in attachment_ids if i]
    if not ids:
        return []
    with engine.begin() as conn:
        rows = conn.execute(select(attachments).where(attachments.c.id.in_(ids))).fetchall()
    by_id = {r.id: _row_to_attachment(r) for r in rows}
    return [by_id[i] for i in ids if i in by_id]


def delete_attachment(engine: Engine, attachment_id: str) -> Attachment | None:
    """Delete an attachment row and return it, or None when absent."""

    with engine.begin() as conn:
        row = conn.execute(select(attachments).where(attachments.c.id == attachment_id)).fetchone()
        if not row:
            return None
        conn.execute(delete(attachments).where(attachments.c.id == attachment_id))
    return _row_to_attachment(row)


def list_assets(engine: Engine, search: str | None = None) -> list[Asset]:
    """List library assets newest first, optionally filtered by file name."""

    q = select(assets)
    if search and search.strip():
        q = q.where(func.lower(assets.c.file_name).contains(search.strip().lower(), autoescape=True))
    q = q.order_by(assets.c.created_at.desc())
    with engine.begin() as conn:
        rows = conn.execute(q).fetchall()
    return [_row_to_asset(r) for r in rows]


def create_asset(
    engine: Engine,
    *,
    file_name: str,
    file_type: str,
    file_size: int,
    storage_path: str,
    public_url: str,
) -> Asset:
    row = {
        "id": new_id(),
        "file_name": file_name,
        "file_type": file_type or "application/octet-stream",
        "file_size": int(file_size),
        "storage_path": storage_path,
        "public_url": public_url,
        "created_at": now(),
    }
    with engine.begin() as conn:
        conn.execute(insert(assets).values(**row))
    return Asset(**row)


def get_asset(engine: Engine, asset_id: str) -> Asset | None:
    with engine.begin() as conn:
        row = conn.execute(select(assets).where(assets.c.id == asset_id)).fetchone()
    return _row_to_asset(row) if row else None


def delete_asset(engine: Engine, asset_id: str) -> Asset | None:
    """Delete an asset row and return it, or None when absent."""

    with engine.begin() as conn:
        row = conn.execute(select(assets).where(assets.c.id == asset_id)).fetchone()
        if not row:
            return None
        conn.execute(delete(assets).where(assets.c.id == asset_id))
    return _row_to_asset(row)
