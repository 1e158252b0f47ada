"""Transactional persistence of the theme catalog"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import SQLAlchemyError

from theme_gallery.config.database import SessionLocal
from theme_gallery.config.settings import settings
from theme_gallery.crawlers.contracts import Gallery, ListFilter, ThemeRecord
from theme_gallery.errors import BatchInsertError, NotFound
from theme_gallery.models.theme import Theme

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = (
    "name",
    "author",
    "description",
    "url",
    "hash",
    "light",
    "version",
    "project_repo_id",
    "project_repo",
    "readme",
    "license",
    "provider",
    "updated_at",
)


class CatalogStore:
    """
    CRUD over the `themes` table

    Identifiers are UUID4 strings assigned here and nowhere else. Every
    operation either commits fully or rolls back and raises.
    """

    def __init__(
        self,
        session_factory: Callable[[], Any] = SessionLocal,
        *,
        batch_size: Optional[int] = None,
    ) -> None:
        self._session_factory = session_factory
        self._batch_size = max(int(batch_size or settings.STORE_BATCH_SIZE), 1)

    def save_one(self, theme: ThemeRecord) -> ThemeRecord:
        """Assign a new identifier and insert one theme."""
        theme_id = str(uuid.uuid4())
        db = self._session_factory()
        try:
            db.add(Theme(id=theme_id, **self._row_values(theme)))
            db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save theme {theme.name!r}: {e}")
            db.rollback()
            raise
        finally:
            db.close()

        theme.id = theme_id
        return theme

    def save_batch(self, *themes: ThemeRecord) -> int:
        """
        Insert every theme in one transaction or none of them

        Identifiers are assigned up front. If any statement fails or the
        number of inserted rows differs from the number requested, the
        transaction is rolled back and all assigned identifiers are cleared.

        Returns:
            Number of inserted rows

        Raises:
            BatchInsertError: the batch was rolled back
        """
        if not themes:
            return 0

        for theme in themes:
            theme.id = str(uuid.uuid4())
        rows = [{"id": theme.id, **self._row_values(theme)} for theme in themes]

        db = self._session_factory()
        inserted = 0
        try:
            for chunk in _chunks(rows, self._batch_size):
                result = db.execute(insert(Theme).values(chunk))
                inserted += result.rowcount

            if inserted != len(themes):
                raise BatchInsertError(
                    f"inserted {inserted} of {len(themes)} themes",
                    requested=len(themes),
                    inserted=inserted,
                )
            db.commit()
        except BatchInsertError as e:
            logger.error(f"Missing theme inserts, rolling back batch: {e}")
            db.rollback()
            _clear_ids(themes)
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error inserting theme batch, rolling back: {e}")
            db.rollback()
            _clear_ids(themes)
            raise BatchInsertError(
                f"batch insert of {len(themes)} themes failed: {e}",
                requested=len(themes),
                inserted=inserted,
            ) from e
        finally:
            db.close()

        logger.info(f"Saved {inserted} themes to database")
        return inserted

    def get(self, theme_id: str) -> ThemeRecord:
        db = self._session_factory()
        try:
            row = db.get(Theme, theme_id) if theme_id else None
            if row is None:
                raise NotFound(theme_id)
            return self._to_record(row)
        finally:
            db.close()

    def update(self, theme: ThemeRecord) -> ThemeRecord:
        """Overwrite the mutable fields of an existing row; the id never changes."""
        db = self._session_factory()
        try:
            row = db.get(Theme, theme.id) if theme.id else None
            if row is None:
                raise NotFound(theme.id)

            for field_name, value in self._row_values(theme).items():
                setattr(row, field_name, value)
            db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to update theme {theme.id}: {e}")
            db.rollback()
            raise
        finally:
            db.close()
        return theme

    def delete(self, theme_id: str) -> None:
        """Remove a theme. Deleting an absent id raises NotFound."""
        db = self._session_factory()
        try:
            result = db.execute(delete(Theme).where(Theme.id == theme_id))
            if result.rowcount == 0:
                db.rollback()
                logger.info(f"Theme not found for delete: {theme_id}")
                raise NotFound(theme_id)
            db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete theme {theme_id}: {e}")
            db.rollback()
            raise
        finally:
            db.close()

    def list(self, filter: Optional[ListFilter] = None) -> Gallery:
        """Themes ordered by name, windowed by positive limit/offset."""
        statement = select(Theme).order_by(Theme.name)
        if filter is not None:
            if filter.limit > 0:
                statement = statement.limit(filter.limit)
            if filter.offset > 0:
                statement = statement.offset(filter.offset)

        db = self._session_factory()
        try:
            return [self._to_record(row) for row in db.scalars(statement).all()]
        finally:
            db.close()

    def existing_hashes(self, hashes: Iterable[str]) -> set[str]:
        """Subset of the given URL hashes that are already stored."""
        wanted = sorted({value for value in hashes if value})
        if not wanted:
            return set()

        found: set[str] = set()
        db = self._session_factory()
        try:
            for chunk in _chunks(wanted, self._batch_size):
                found.update(db.scalars(select(Theme.hash).where(Theme.hash.in_(chunk))).all())
        finally:
            db.close()
        return found

    @staticmethod
    def _row_values(theme: ThemeRecord) -> dict[str, Any]:
        return {field_name: getattr(theme, field_name) for field_name in MUTABLE_FIELDS}

    @staticmethod
    def _to_record(row: Theme) -> ThemeRecord:
        return ThemeRecord(id=row.id, **{field_name: getattr(row, field_name) for field_name in MUTABLE_FIELDS})


def _chunks(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _clear_ids(themes: Iterable[ThemeRecord]) -> None:
    for theme in themes:
        theme.id = ""
