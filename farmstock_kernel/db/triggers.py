"""
Module: farmstock_kernel.db.triggers
Responsibility: Installing, removing and verifying PostgreSQL immutability
    triggers (Layer 2 of 2).  This is the database-level complement to the
    ORM-level listeners in db/immutability.py.
Architecture position: Kernel > DB.  May import from db/ only.

Invariants enforced:
    - audit_records rows: no UPDATE, no DELETE, ever.
    - harvest_events rows: no DELETE; UPDATE may only change yield_amount
      (and the updated_at / updated_by_id metadata columns).

Failure modes:
    - PostgreSQL RAISE EXCEPTION on any trigger violation (surfaced by
      SQLAlchemy as IntegrityError/InternalError/ProgrammingError depending
      on the driver's SQLSTATE mapping).
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine

AUDIT_RECORD_SQL = """
CREATE OR REPLACE FUNCTION farmstock_prevent_audit_record_change()
RETURNS TRIGGER AS $$
BEGIN
    RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: audit_records rows are append-only (% on %)',
        TG_OP, OLD.id;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS trg_audit_record_immutability_update ON audit_records;
CREATE TRIGGER trg_audit_record_immutability_update
    BEFORE UPDATE ON audit_records
    FOR EACH ROW EXECUTE FUNCTION farmstock_prevent_audit_record_change();

DROP TRIGGER IF EXISTS trg_audit_record_immutability_delete ON audit_records;
CREATE TRIGGER trg_audit_record_immutability_delete
    BEFORE DELETE ON audit_records
    FOR EACH ROW EXECUTE FUNCTION farmstock_prevent_audit_record_change();
"""

HARVEST_EVENT_SQL = """
CREATE OR REPLACE FUNCTION farmstock_guard_harvest_event_update()
RETURNS TRIGGER AS $$
BEGIN
    IF NEW.crop_id IS DISTINCT FROM OLD.crop_id
       OR NEW.farm_id IS DISTINCT FROM OLD.farm_id
       OR NEW.inventory_item_id IS DISTINCT FROM OLD.inventory_item_id
       OR NEW.harvest_date IS DISTINCT FROM OLD.harvest_date
       OR NEW.quality_rating IS DISTINCT FROM OLD.quality_rating
       OR NEW.created_at IS DISTINCT FROM OLD.created_at
       OR NEW.created_by_id IS DISTINCT FROM OLD.created_by_id THEN
        RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: only yield_amount of harvest % may change',
            OLD.id;
    END IF;
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

CREATE OR REPLACE FUNCTION farmstock_prevent_harvest_event_delete()
RETURNS TRIGGER AS $$
BEGIN
    RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: harvest % cannot be deleted', OLD.id;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS trg_harvest_event_immutability_update ON harvest_events;
CREATE TRIGGER trg_harvest_event_immutability_update
    BEFORE UPDATE ON harvest_events
    FOR EACH ROW EXECUTE FUNCTION farmstock_guard_harvest_event_update();

DROP TRIGGER IF EXISTS trg_harvest_event_immutability_delete ON harvest_events;
CREATE TRIGGER trg_harvest_event_immutability_delete
    BEFORE DELETE ON harvest_events
    FOR EACH ROW EXECUTE FUNCTION farmstock_prevent_harvest_event_delete();
"""

DROP_SQL = """
DROP TRIGGER IF EXISTS trg_audit_record_immutability_update ON audit_records;
DROP TRIGGER IF EXISTS trg_audit_record_immutability_delete ON audit_records;
DROP TRIGGER IF EXISTS trg_harvest_event_immutability_update ON harvest_events;
DROP TRIGGER IF EXISTS trg_harvest_event_immutability_delete ON harvest_events;
DROP FUNCTION IF EXISTS farmstock_prevent_audit_record_change();
DROP FUNCTION IF EXISTS farmstock_guard_harvest_event_update();
DROP FUNCTION IF EXISTS farmstock_prevent_harvest_event_delete();
"""

ALL_TRIGGER_NAMES = [
    "trg_audit_record_immutability_update",
    "trg_audit_record_immutability_delete",
    "trg_harvest_event_immutability_update",
    "trg_harvest_event_immutability_delete",
]


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install database-level immutability triggers.

    Preconditions: Tables must exist (call after create_all()).
        Engine must be connected to PostgreSQL.
    Postconditions: All triggers in ALL_TRIGGER_NAMES are installed
        (CREATE OR REPLACE / DROP IF EXISTS make this idempotent).
    """
    with engine.begin() as conn:
        conn.execute(text(AUDIT_RECORD_SQL))
        conn.execute(text(HARVEST_EVENT_SQL))


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove database-level immutability triggers.

    WARNING: Leaving triggers uninstalled outside of tests removes the
    second layer of audit protection.
    """
    from sqlalchemy import inspect

    if not inspect(engine).has_table("audit_records"):
        return
    with engine.begin() as conn:
        conn.execute(text(DROP_SQL))


def triggers_installed(engine: Engine) -> list[str]:
    """Return the names of farmstock triggers present in the database."""
    with engine.connect() as conn:
        rows = conn.execute(
            text(
                "SELECT tgname FROM pg_trigger "
                "WHERE NOT tgisinternal AND tgname = ANY(:names)"
            ),
            {"names": ALL_TRIGGER_NAMES},
        )
        return sorted(row[0] for row in rows)
