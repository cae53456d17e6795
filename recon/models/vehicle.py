# recon/models/vehicle.py
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, Integer, Boolean, DateTime, Numeric, ForeignKey, Uuid, Identity, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from ..db.base import Base

class Vehicle(Base):
    __tablename__ = "vehicles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4, server_default=text("gen_random_uuid()")
    )
    dealership_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("dealerships.id", ondelete="CASCADE"), nullable=False
    )
    row_id: Mapped[int] = mapped_column(Integer, Identity(), nullable=False)
    stock_num: Mapped[str | None] = mapped_column(String)
    year: Mapped[str | None] = mapped_column(String)
    make: Mapped[str | None] = mapped_column(String)
    model: Mapped[str | None] = mapped_column(String)
    vin: Mapped[str | None] = mapped_column(String)

    # intake timestamp; vehicle age is derived from it, never stored
    in_system_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    notes: Mapped[str] = mapped_column(String, nullable=False, server_default="")
    ro_num: Mapped[str | None] = mapped_column(String)
    estimate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    actual: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))

    # soft delete
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
