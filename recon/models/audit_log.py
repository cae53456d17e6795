# recon/models/audit_log.py
import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, ForeignKey, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from ..db.base import Base

class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4, server_default=text("gen_random_uuid()")
    )
    dealership_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("dealerships.id", ondelete="CASCADE"), nullable=True
    )
    user_name: Mapped[str | None] = mapped_column(String)
    user_role: Mapped[str | None] = mapped_column(String)
    action: Mapped[str] = mapped_column(String, nullable=False)
    vehicle_desc: Mapped[str | None] = mapped_column(String)
    # no FK: entries outlive the vehicle they describe
    vehicle_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    field_name: Mapped[str | None] = mapped_column(String)
    old_value: Mapped[str | None] = mapped_column(String)
    new_value: Mapped[str | None] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
