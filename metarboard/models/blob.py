"""Key-value blob row backing the SQL blob store.

The outage ledger is stored whole under one key; the table stays generic so
other whole-document state can share it.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from metarboard.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KvBlob(Base):
    __tablename__ = "kv_blobs"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return f"<KvBlob {self.key} ({len(self.value)} bytes) @ {self.updated_at}>"
