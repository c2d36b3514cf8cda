from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.musaib.constants import DemandStatus
from app.musaib.models import Base

_JSON = JSON().with_variant(JSONB(), "postgresql")


class Demand(Base):
    __tablename__ = "demands"
    __table_args__ = (
        Index("idx_demands_member_created", "member_id", "created_at"),
        Index("idx_demands_status_created", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    member_id: Mapped[int] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    member_name: Mapped[str] = mapped_column(String(255), nullable=False)

    service_type: Mapped[str] = mapped_column(String(64), nullable=False)  # Scolaire, Santé, Décès, ...
    beneficiary_name: Mapped[str] = mapped_column(String(255), nullable=False)
    beneficiary_relation: Mapped[str | None] = mapped_column(String(32), nullable=True)  # "self" or a family relation
    amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    event_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    justification_document: Mapped[dict[str, Any] | None] = mapped_column(_JSON, nullable=True)
    payment_info: Mapped[dict[str, Any] | None] = mapped_column(_JSON, nullable=True)

    # en_attente -> acceptee|rejetee (controller) -> validee|rejetee (administrator)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=DemandStatus.PENDING.value)

    controller_id: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    controller_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    processing_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    administrator_id: Mapped[int | None] = mapped_column(ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    administrator_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    validation_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        def _iso(v: date | datetime | None) -> str | None:
            return v.isoformat() if v else None

        return {
            "id": self.id,
            "member_id": self.member_id,
            "member_name": self.member_name,
            "service_type": self.service_type,
            "beneficiary_name": self.beneficiary_name,
            "beneficiary_relation": self.beneficiary_relation,
            "amount": str(self.amount) if self.amount is not None else None,
            "event_date": _iso(self.event_date),
            "justification_document": self.justification_document,
            "payment_info": self.payment_info,
            "status": self.status,
            "controller_id": self.controller_id,
            "controller_name": self.controller_name,
            "processing_date": _iso(self.processing_date),
            "administrator_id": self.administrator_id,
            "administrator_name": self.administrator_name,
            "validation_date": _iso(self.validation_date),
            "comment": self.comment,
            "created_at": _iso(self.created_at),
        }
