# recon/models/__init__.py

# Core entities
from .dealership import Dealership
from .user import User, RoleEnum
from .pipeline_stage import PipelineStage
from .vehicle import Vehicle

# Pipeline state
from .stage_completion import StageCompletion
from .dropdown_list import DropdownList

# Append-only history
from .audit_log import AuditLog


def register_models():
    return [
        Dealership,
        User,
        PipelineStage,
        Vehicle,
        StageCompletion,
        DropdownList,
        AuditLog,
    ]

__all__ = [
    "Dealership",
    "User", "RoleEnum",
    "PipelineStage",
    "Vehicle",
    "StageCompletion",
    "DropdownList",
    "AuditLog",
    "register_models",
]
