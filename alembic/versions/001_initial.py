"""Initial tables: trainer_progress, trainer_attempts, user_stats, user_achievements.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "trainer_progress",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("learner_id", sa.String(64), nullable=False),
        sa.Column("trainer_id", sa.String(128), nullable=False),
        sa.Column("progress_json", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("learner_id", "trainer_id", name="uq_trainer_progress_learner_trainer"),
    )
    op.create_index(op.f("ix_trainer_progress_learner_id"), "trainer_progress", ["learner_id"], unique=False)

    op.create_table(
        "trainer_attempts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("learner_id", sa.String(64), nullable=False),
        sa.Column("trainer_id", sa.String(128), nullable=False),
        sa.Column("attempt_token", sa.String(128), nullable=True),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("level", sa.String(64), nullable=False),
        sa.Column("preset_id", sa.String(64), nullable=True),
        sa.Column("result_json", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("learner_id", "trainer_id", "attempt_token", name="uq_trainer_attempts_token"),
    )
    op.create_index(op.f("ix_trainer_attempts_learner_id"), "trainer_attempts", ["learner_id"], unique=False)
    op.create_index(op.f("ix_trainer_attempts_trainer_id"), "trainer_attempts", ["trainer_id"], unique=False)
    op.create_index(op.f("ix_trainer_attempts_created_at"), "trainer_attempts", ["created_at"], unique=False)

    op.create_table(
        "user_stats",
        sa.Column("learner_id", sa.String(64), nullable=False),
        sa.Column("total_problems", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_correct", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_mistakes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_time_sec", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sessions_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("perfect_sessions_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("race_wins_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("learner_id"),
    )

    op.create_table(
        "user_achievements",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("learner_id", sa.String(64), nullable=False),
        sa.Column("achievement_id", sa.String(64), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("learner_id", "achievement_id", name="uq_user_achievements_learner_achievement"),
    )
    op.create_index(op.f("ix_user_achievements_learner_id"), "user_achievements", ["learner_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_user_achievements_learner_id"), table_name="user_achievements")
    op.drop_table("user_achievements")
    op.drop_table("user_stats")
    op.drop_index(op.f("ix_trainer_attempts_created_at"), table_name="trainer_attempts")
    op.drop_index(op.f("ix_trainer_attempts_trainer_id"), table_name="trainer_attempts")
    op.drop_index(op.f("ix_trainer_attempts_learner_id"), table_name="trainer_attempts")
    op.drop_table("trainer_attempts")
    op.drop_index(op.f("ix_trainer_progress_learner_id"), table_name="trainer_progress")
    op.drop_table("trainer_progress")
