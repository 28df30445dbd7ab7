# ==============================================================================
# DATABASE MODULE
# ==============================================================================
# SQLite conversion history. Uses SQLAlchemy ORM for clean data access.
#
# Tables:
#   - conversions: one row per source .data file with the outcome of its
#                  most recent conversion
#
# The history powers incremental conversion (skip files whose hash matches
# the last successful run) and the `history` CLI command.
# ==============================================================================

import logging
import os
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# ==============================================================================
# SQLAlchemy Base Class
# ==============================================================================
Base = declarative_base()

STATUS_CONVERTED = 'converted'
STATUS_FAILED = 'failed'


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ==============================================================================
# CONVERSION RECORD MODEL
# ==============================================================================
# Status values:
#   - "converted": decoded and written successfully
#   - "failed":    decode or I/O error, see `error`
# ==============================================================================
class ConversionRecord(Base):
    """
    Outcome of the latest conversion of one source file.

    Attributes:
        id (int):            Unique identifier
        source_path (str):   Absolute path of the .data file
        output_path (str):   Absolute path of the written image
        source_hash (str):   MD5 of the source at conversion time
        width (int):         Decoded width (None if decoding failed)
        height (int):        Decoded height (None if decoding failed)
        has_alpha (bool):    Whether the atlas used alpha runs
        status (str):        "converted" or "failed"
        error (str):         Error message for failed conversions
        converted_at:        When this record was last written
    """
    __tablename__ = 'conversions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    source_path = Column(String(1024), unique=True, nullable=False)
    output_path = Column(String(1024), nullable=True)
    source_hash = Column(String(64), nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    has_alpha = Column(Boolean, nullable=True)
    status = Column(String(20), nullable=False, default=STATUS_CONVERTED)
    error = Column(Text, nullable=True)
    converted_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<ConversionRecord(source='{self.source_path}', status='{self.status}')>"


# ==============================================================================
# DATABASE CLASS
# ==============================================================================
# Usage:
#   db = Database("/home/me/.config/AtlasExtractor/history.db")
#   db.record_conversion("/in/a.data", "/out/a.png", "abc123...", 64, 64, True)
#   db.get_stats()
# ==============================================================================
class Database:
    """
    Conversion history store.

    Sessions are opened per call, so a Database is safe to use from the
    thread that created it. The batch converter only touches it from its
    calling thread.

    Attributes:
        db_path (str): Path to the SQLite database file (":memory:" allowed)
        engine: SQLAlchemy engine instance
        Session: SQLAlchemy session factory
    """

    def __init__(self, db_path: str):
        """
        Args:
            db_path: Path to the SQLite database file.
                     The file will be created if it doesn't exist.
        """
        self.db_path = db_path

        if db_path != ':memory:':
            directory = os.path.dirname(os.path.abspath(db_path))
            os.makedirs(directory, exist_ok=True)

        self.engine = create_engine(f'sqlite:///{db_path}', echo=False)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)

        Base.metadata.create_all(self.engine)

    def close(self):
        """Release pooled connections."""
        self.engine.dispose()

    # ==========================================================================
    # CONVERSION RECORDS
    # ==========================================================================

    def record_conversion(self, source_path: str, output_path: Optional[str],
                          source_hash: Optional[str] = None,
                          width: Optional[int] = None,
                          height: Optional[int] = None,
                          has_alpha: Optional[bool] = None,
                          status: str = STATUS_CONVERTED,
                          error: Optional[str] = None) -> ConversionRecord:
        """
        Insert or update the record for a source file.

        Returns:
            The stored ConversionRecord
        """
        session = self.Session()
        try:
            record = session.query(ConversionRecord).filter(
                ConversionRecord.source_path == source_path
            ).first()

            if record is None:
                record = ConversionRecord(source_path=source_path)
                session.add(record)

            record.output_path = output_path
            record.source_hash = source_hash
            record.width = width
            record.height = height
            record.has_alpha = has_alpha
            record.status = status
            record.error = error
            record.converted_at = _utcnow()

            session.commit()
            return record
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_record(self, source_path: str) -> Optional[ConversionRecord]:
        """Get the record for a source path, if any."""
        session = self.Session()
        try:
            return session.query(ConversionRecord).filter(
                ConversionRecord.source_path == source_path
            ).first()
        finally:
            session.close()

    def get_all_records(self, status: Optional[str] = None,
                        limit: Optional[int] = None) -> List[ConversionRecord]:
        """
        Get history records, newest first.

        Args:
            status: Only records with this status
            limit:  Maximum number of records
        """
        session = self.Session()
        try:
            query = session.query(ConversionRecord)
            if status:
                query = query.filter(ConversionRecord.status == status)
            query = query.order_by(ConversionRecord.converted_at.desc(),
                                   ConversionRecord.id.desc())
            if limit:
                query = query.limit(limit)
            return query.all()
        finally:
            session.close()

    def clear_history(self) -> int:
        """
        Delete all records.

        Returns:
            Number of records removed
        """
        session = self.Session()
        try:
            count = session.query(ConversionRecord).delete()
            session.commit()
            logger.info("Cleared %d history records", count)
            return count
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ==========================================================================
    # STATISTICS
    # ==========================================================================

    def get_stats(self) -> dict:
        """Get overall statistics about the conversion history."""
        session = self.Session()
        try:
            return {
                'total': session.query(ConversionRecord).count(),
                'converted': session.query(ConversionRecord).filter(
                    ConversionRecord.status == STATUS_CONVERTED
                ).count(),
                'failed': session.query(ConversionRecord).filter(
                    ConversionRecord.status == STATUS_FAILED
                ).count(),
            }
        finally:
            session.close()
