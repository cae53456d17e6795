# recon/models/user.py
import uuid
from enum import Enum
from datetime import datetime
from sqlalchemy import String, Boolean, DateTime, ForeignKey, Uuid, text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from ..db.base import Base

class RoleEnum(str, Enum):
    Manager = "Manager"
    Service = "Service"
    Detail = "Detail"
    Sales = "Sales"

class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4, server_default=text("gen_random_uuid()")
    )
    dealership_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("dealerships.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # bcrypt hash of the login PIN; PINs are never stored in clear
    pin_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # TEXT[] of RoleEnum values, matches the SQL setup scripts
    roles: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, server_default=text("'{}'")
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
