import importlib.util
import os
from datetime import datetime

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import select

from carelink.models.doctor_verification import DoctorVerification
from carelink.models.profile import Profile
from carelink.models.user import User

VERSIONS = os.path.join(os.path.dirname(__file__), "..", "alembic", "versions")


def _load_revision(filename):
    spec = importlib.util.spec_from_file_location(filename[:-3], os.path.join(VERSIONS, filename))
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _account(db, email, role, is_verified=False):
    user = User(email=email, password_hash="x", role=role, is_active=True)
    db.add(user)
    db.flush()
    db.add(Profile(user_id=user.id, username=email.split("@")[0], role=role, is_verified=is_verified))
    return user


def test_status_normalization_only_touches_doctor_profiles(db):
    approved_at = datetime(2025, 3, 1, 9, 30)
    doctor = _account(db, "doc@example.com", "doctor")
    demoted = _account(db, "old@example.com", "doctor", is_verified=True)
    patient = _account(db, "pat@example.com", "patient", is_verified=True)
    db.add_all(
        [
            DoctorVerification(user_id=doctor.id, status="pending", created_at=datetime(2025, 1, 1)),
            DoctorVerification(
                user_id=doctor.id, status=" Approved ", verified_at=approved_at, created_at=datetime(2025, 2, 1)
            ),
            DoctorVerification(user_id=demoted.id, status="none", created_at=datetime(2025, 1, 1)),
        ]
    )
    db.commit()

    migration = _load_revision("8c7d6e5f4a3b_normalize_verification_status.py")
    with Operations.context(MigrationContext.configure(db.connection())):
        migration.upgrade()
    db.commit()
    db.expire_all()

    statuses = sorted(db.execute(select(DoctorVerification.status)).scalars().all())
    assert statuses == ["pending", "unverified", "verified"]

    profiles = {p.user_id: p for p in db.execute(select(Profile)).scalars().all()}
    assert profiles[doctor.id].is_verified is True
    assert profiles[doctor.id].verification_date.replace(tzinfo=None) == approved_at
    assert profiles[demoted.id].is_verified is False
    assert profiles[demoted.id].verification_date is None
    # Patients keep whatever they had.
    assert profiles[patient.id].is_verified is True
