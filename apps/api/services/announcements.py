"""Team announcements: readable by everyone, written by coaching staff."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from core.policy import Collection, Op, require, require_staff
from models import Announcement

logger = logging.getLogger(__name__)


def list_announcements(db: Session, *, pinned_only: bool = False, limit: Optional[int] = None) -> List[Announcement]:
    query = db.query(Announcement)
    if pinned_only:
        query = query.filter(Announcement.pinned.is_(True))
    query = query.order_by(Announcement.pinned.desc(), Announcement.created_at.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def list_recent_announcements(db: Session, limit: int = 5) -> List[Announcement]:
    return db.query(Announcement).order_by(Announcement.created_at.desc()).limit(limit).all()


def create_announcement(
    db: Session,
    actor_id: UUID,
    *,
    title: str,
    body: Optional[str] = None,
    pinned: bool = False,
) -> Announcement:
    clean_title = (title or "").strip()
    if not clean_title:
        raise ValidationError("Title is required", field="title")

    announcement = Announcement(
        title=clean_title,
        body=(body or "").strip() or None,
        pinned=bool(pinned),
        created_by=actor_id,
    )
    require(db, Op.INSERT, Collection.ANNOUNCEMENT, announcement, actor_id, "Only coaching staff can post announcements")
    db.add(announcement)
    db.flush()
    logger.info(f"Announcement {announcement.id} posted by {actor_id}")
    return announcement


def update_announcement(db: Session, actor_id: UUID, announcement_id: UUID, changes: Dict[str, Any]) -> Announcement:
    announcement = db.get(Announcement, announcement_id)
    if announcement is None:
        raise NotFoundError("Announcement", str(announcement_id))
    require(db, Op.UPDATE, Collection.ANNOUNCEMENT, announcement, actor_id, "Only coaching staff can edit announcements")

    if "title" in changes:
        title = (changes["title"] or "").strip()
        if not title:
            raise ValidationError("Title is required", field="title")
        announcement.title = title
    if "body" in changes:
        announcement.body = (changes["body"] or "").strip() or None
    if "pinned" in changes and changes["pinned"] is not None:
        announcement.pinned = bool(changes["pinned"])
    db.flush()
    return announcement


def delete_announcement(db: Session, actor_id: UUID, announcement_id: UUID) -> bool:
    require_staff(db, actor_id, "Only coaching staff can delete announcements")
    announcement = db.get(Announcement, announcement_id)
    if announcement is None:
        return False
    require(db, Op.DELETE, Collection.ANNOUNCEMENT, announcement, actor_id, "Only coaching staff can delete announcements")
    db.delete(announcement)
    db.flush()
    return True
