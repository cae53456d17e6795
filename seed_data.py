import os
import uuid
from dotenv import load_dotenv
from pathlib import Path
from passlib.context import CryptContext
from sqlalchemy import select

load_dotenv(dotenv_path=Path(__file__).with_name(".env"), override=True)

from recon import DEFAULT_DEALERSHIP_ID  # noqa: E402
from recon.db.engine import SessionLocal  # noqa: E402
from recon.models import Dealership, User, PipelineStage, DropdownList  # noqa: E402

pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")

# order, name, role, completion field, type, list, target hours, color, terminal
DEFAULT_STAGES = [
    (1, "Pending Inventory", "Manager", "Inventory", "checkbox", None, None, "#EF4444", False),
    (2, "Awaiting Detail", "Detail", "Detailer", "dropdown", "Detailers", 4, "#EAB308", False),
    (3, "Awaiting Photos", "Detail", "Photographer", "dropdown", "Detailers", 2, "#EAB308", False),
    (4, "Awaiting Service", "Service", "Service Advisor", "dropdown", "Advisors", 8, "#EAB308", False),
    (5, "Pending Estimate", "Service", "Technician", "dropdown", "Technicians", 24, "#EAB308", False),
    (6, "Pending Approval", "Manager", "Approved", "checkbox", None, 4, "#F97316", False),
    (7, "Approved - Pending Repair", "Service", "Work Complete", "checkbox", None, 48, "#EAB308", False),
    (8, "Ready for Sale", "Sales", "", "checkbox", None, None, "#22C55E", True),
]

DEFAULT_LISTS = {
    "Detailers": ["John D.", "Maria L.", "Chris T."],
    "Advisors": ["Mike A.", "Lisa B.", "Pat M."],
    "Technicians": ["Tom R.", "Dave W.", "Steve H."],
}

def seed_data():
    dealership_id = uuid.UUID(os.environ.get("DEFAULT_DEALERSHIP_ID", DEFAULT_DEALERSHIP_ID))
    db = SessionLocal()
    try:
        if db.get(Dealership, dealership_id) is None:
            db.add(Dealership(id=dealership_id, name="Demo Dealership"))
            db.flush()
            print("✓ dealership created")

        if not db.scalars(select(User).where(User.dealership_id == dealership_id)).first():
            db.add(User(
                dealership_id=dealership_id,
                name="Admin",
                pin_hash=pwd_ctx.hash(os.environ.get("ADMIN_PIN", "0000")),
                roles=["Manager"],
                active=True,
            ))
            print("✓ admin user created")

        if not db.scalars(select(PipelineStage).where(PipelineStage.dealership_id == dealership_id)).first():
            for order, name, role, field, kind, list_name, hours, color, terminal in DEFAULT_STAGES:
                db.add(PipelineStage(
                    dealership_id=dealership_id,
                    order=order,
                    stage_name=name,
                    role=role,
                    completion_field=field,
                    completion_type=kind,
                    list_name=list_name,
                    target_hours=hours,
                    stage_color=color,
                    is_terminal=terminal,
                ))
            print("✓ pipeline stages created")

        if not db.scalars(select(DropdownList).where(DropdownList.dealership_id == dealership_id)).first():
            for list_name, values in DEFAULT_LISTS.items():
                db.add(DropdownList(dealership_id=dealership_id, list_name=list_name, values=values))
            print("✓ dropdown lists created")

        db.commit()
    finally:
        db.close()

if __name__ == '__main__':
    seed_data()
