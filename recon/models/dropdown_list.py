# recon/models/dropdown_list.py
import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, ForeignKey, Uuid, text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from ..db.base import Base

class DropdownList(Base):
    __tablename__ = "dropdown_lists"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4, server_default=text("gen_random_uuid()")
    )
    dealership_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("dealerships.id", ondelete="CASCADE"), nullable=False
    )
    list_name: Mapped[str] = mapped_column(String, nullable=False)
    values: Mapped[list[str]] = mapped_column(
        "values", ARRAY(String), nullable=False, server_default=text("'{}'")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
