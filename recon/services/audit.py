import logging
from typing import Callable, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

logger = logging.getLogger(__name__)

ACTIONS = {"create", "update", "archive", "complete", "clear"}


def _str_or_none(v) -> Optional[str]:
    return None if v is None else str(v)


class SqlAuditSink:
    """
    Append-only writer for the audit_log table.

    Each entry is written in its own connection and transaction so a failed
    audit write never rolls back the change it describes. Failures are logged
    and reported through the return value, not raised.
    """

    def __init__(self, conn_factory: Callable[[], Connection]):
        self._conn_factory = conn_factory

    def record(
        self,
        action: str,
        vehicle_id: Optional[str],
        field_name: Optional[str],
        old_value,
        new_value,
        actor: Optional[str],
        *,
        actor_role: Optional[str] = None,
        dealership_id: Optional[str] = None,
        vehicle_desc: Optional[str] = None,
    ) -> bool:
        if action not in ACTIONS:
            raise ValueError("invalid_action")
        try:
            with self._conn_factory() as conn:
                with conn.begin():
                    conn.execute(
                        text("""
                            INSERT INTO audit_log
                              (dealership_id, user_name, user_role, action, vehicle_desc,
                               vehicle_id, field_name, old_value, new_value)
                            VALUES
                              (:did, :user_name, :user_role, :action, :vehicle_desc,
                               :vid, :field_name, :old_value, :new_value)
                        """),
                        {
                            "did": dealership_id,
                            "user_name": actor,
                            "user_role": actor_role,
                            "action": action,
                            "vehicle_desc": vehicle_desc,
                            "vid": vehicle_id,
                            "field_name": field_name,
                            "old_value": _str_or_none(old_value),
                            "new_value": _str_or_none(new_value),
                        },
                    )
            return True
        except Exception:
            logger.exception("audit write failed (action=%s vehicle=%s)", action, vehicle_id)
            return False


def fetch_audit_log(conn: Connection, dealership_id: str, limit: int = 100, vehicle_id: Optional[str] = None) -> list:
    sql = """
        SELECT id, user_name, user_role, action, vehicle_desc, vehicle_id,
               field_name, old_value, new_value, created_at
        FROM audit_log
        WHERE dealership_id = :did
    """
    params = {"did": dealership_id, "lim": limit}
    if vehicle_id is not None:
        sql += " AND vehicle_id = :vid"
        params["vid"] = vehicle_id
    sql += " ORDER BY created_at DESC LIMIT :lim"

    out = []
    for r in conn.execute(text(sql), params).mappings().all():
        d = dict(r)
        d["id"] = str(d["id"])
        if d.get("vehicle_id") is not None:
            d["vehicle_id"] = str(d["vehicle_id"])
        if d.get("created_at") is not None:
            d["created_at"] = d["created_at"].isoformat()
        out.append(d)
    return out
