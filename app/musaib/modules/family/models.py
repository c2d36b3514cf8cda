from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.musaib.models import Base


class FamilyMember(Base):
    __tablename__ = "family_members"
    __table_args__ = (
        Index("idx_family_members_owner_relation", "owner_user_id", "relation"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_user_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)

    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    national_id: Mapped[str | None] = mapped_column(String(64), nullable=True)  # NPI
    birth_certificate_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)

    # epoux, epouse, enfant, pere, mere, beau_pere, belle_mere
    relation: Mapped[str] = mapped_column(String(32), nullable=False)

    # {name, url, path, size, uploaded_at}
    justification_document: Mapped[dict[str, Any] | None] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_user_id": self.owner_user_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "national_id": self.national_id,
            "birth_certificate_ref": self.birth_certificate_ref,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "relation": self.relation,
            "justification_document": self.justification_document,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
