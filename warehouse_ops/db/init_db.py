from __future__ import annotations

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session, sessionmaker

from warehouse_ops.db.base import Base
from warehouse_ops.db.session import SessionLocal, engine
from warehouse_ops.models import productivity as _productivity  # noqa: F401  (register tables)
from warehouse_ops.models.production import ProductionCase, Shipment
from warehouse_ops.models.security import Role, User
from warehouse_ops.security.auth import hash_password

DEMO_PASSWORD = "changeme"

ROLE_PERMISSIONS: dict[str, list[str]] = {
    "Admin": [],
    "Manager": [
        "production:view",
        "production:add",
        "production:delete",
        "productivity:view",
        "productivity:add",
        "productivity:edit",
        "users:view",
        "roles:view",
    ],
    "Supervisor": ["production:view", "production:add", "productivity:view", "productivity:add", "productivity:edit"],
    "Team Leader": ["production:view", "productivity:view", "productivity:add", "productivity:edit"],
    "Contract Staff": ["productivity:view", "productivity:add"],
    "Warehouse Associate": ["production:view", "productivity:view", "productivity:add"],
    "Driver": [],
}


def init_db(*, seed: bool = True, bind: Engine | None = None) -> None:
    """
    Create tables and, on an empty database, seed roles, demo users and one shipment.
    """

    target = bind or engine
    Base.metadata.create_all(bind=target)
    if not seed:
        return

    factory = sessionmaker(bind=bind) if bind is not None else SessionLocal
    with factory() as db:
        if _has_seed_data(db):
            return
        _seed(db)


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Role.id).limit(1)).first() is not None


def _seed(db: Session) -> None:
    db.add_all(
        Role(name=name, description=f"{name} (seeded)", permissions=permissions)
        for name, permissions in ROLE_PERMISSIONS.items()
    )
    db.flush()

    password_hash = hash_password(DEMO_PASSWORD)
    db.add_all(
        [
            User(employee_no="1000", full_name="Ada Admin", role="Admin", branch="BNE", password_hash=password_hash),
            User(employee_no="2000", full_name="Mo Manager", role="Manager", branch="BNE", password_hash=password_hash),
            User(
                employee_no="3000",
                full_name="Sam Sorter",
                role="Warehouse Associate",
                branch="BNE",
                password_hash=password_hash,
            ),
            # Explicit permissions override the role's.
            User(
                employee_no="4000",
                full_name="Pat Packer",
                role="Contract Staff",
                branch="SYD",
                permissions={"productivity": ["view", "add"]},
                password_hash=password_hash,
            ),
        ]
    )

    shipment = Shipment(id="SHP-0001")
    db.add(shipment)
    db.flush()
    for number, total in (("C-001", 100), ("C-002", 40), ("C-003", 12)):
        db.add(
            ProductionCase(
                shipment_id=shipment.id,
                case_number=number,
                total_lines=total,
                consumed_lines=0,
                remaining_lines=total,
                fully_sorted=False,
            )
        )
    shipment.production_uploaded = True

    db.commit()
