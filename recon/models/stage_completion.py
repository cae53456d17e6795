# recon/models/stage_completion.py
import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, ForeignKey, Uuid, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column
from ..db.base import Base

class StageCompletion(Base):
    __tablename__ = "stage_completions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4, server_default=text("gen_random_uuid()")
    )
    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False
    )
    stage_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("pipeline_stages.id", ondelete="CASCADE"), nullable=False
    )
    completion_value: Mapped[str | None] = mapped_column(String, nullable=True, server_default="")
    completed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # set when a stage is un-completed; the row itself is kept
    cleared_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("vehicle_id", "stage_id", name="uq_stage_completions_vehicle_stage"),
    )
