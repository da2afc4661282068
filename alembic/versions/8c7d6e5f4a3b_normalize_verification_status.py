"""Normalize doctor verification statuses.

Older clients wrote 'none', '' and 'approved'. Rewrite them to the closed
vocabulary (unverified, pending, verified, rejected), reset anything else to
'unverified' and re-derive profiles.is_verified from each doctor's latest row.

Revision ID: 8c7d6e5f4a3b
Revises: 3f1e2d4c5b6a
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "8c7d6e5f4a3b"
down_revision = "3f1e2d4c5b6a"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        sa.text(
            "UPDATE doctor_verifications SET status = 'unverified' "
            "WHERE status IS NULL OR lower(trim(status)) IN ('', 'none')"
        )
    )
    op.execute(sa.text("UPDATE doctor_verifications SET status = 'verified' WHERE lower(trim(status)) = 'approved'"))
    op.execute(sa.text("UPDATE doctor_verifications SET status = lower(trim(status))"))
    op.execute(
        sa.text(
            "UPDATE doctor_verifications SET status = 'unverified' "
            "WHERE status NOT IN ('unverified', 'pending', 'verified', 'rejected')"
        )
    )
    # The cached flag and date follow each doctor's most recent row.
    op.execute(
        sa.text(
            """
            UPDATE profiles SET
                is_verified = COALESCE((
                    SELECT dv.status = 'verified'
                    FROM doctor_verifications dv
                    WHERE dv.user_id = profiles.user_id
                    ORDER BY dv.created_at DESC
                    LIMIT 1
                ), false),
                verification_date = (
                    SELECT CASE WHEN dv.status = 'verified' THEN dv.verified_at END
                    FROM doctor_verifications dv
                    WHERE dv.user_id = profiles.user_id
                    ORDER BY dv.created_at DESC
                    LIMIT 1
                )
            WHERE role = 'doctor'
            """
        )
    )


def downgrade() -> None:
    # Legacy spellings are not restored.
    pass
