# recon/models/pipeline_stage.py
import uuid
from datetime import datetime
from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, Uuid, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from ..db.base import Base

class PipelineStage(Base):
    __tablename__ = "pipeline_stages"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4, server_default=text("gen_random_uuid()")
    )
    dealership_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("dealerships.id", ondelete="CASCADE"), nullable=False
    )
    order: Mapped[int] = mapped_column("order", Integer, nullable=False)
    stage_name: Mapped[str] = mapped_column(String, nullable=False)
    # owning role, one of RoleEnum
    role: Mapped[str] = mapped_column(String, nullable=False)
    completion_field: Mapped[str] = mapped_column(String, nullable=False, server_default="")
    # keep it TEXT to align with Supabase SQL; values 'checkbox' | 'dropdown'
    completion_type: Mapped[str] = mapped_column(String, nullable=False, server_default="checkbox")
    list_name: Mapped[str | None] = mapped_column(String, nullable=True)
    # NULL means the stage carries no SLA target
    target_hours: Mapped[int | None] = mapped_column(Integer, nullable=True, server_default=text("24"))
    stage_color: Mapped[str] = mapped_column(String, nullable=False, server_default="#6B7280")
    is_terminal: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("dealership_id", "order", name="uq_pipeline_stages_order"),
    )
