"""quiz schema

Revision ID: 4b7e1c9d2a10
Revises:
Create Date: 2026-10-16 21:04:12.311402

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4b7e1c9d2a10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "quiz_contributors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invite_code", sa.String(64), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("user_id", sa.String(128), nullable=True, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column(
            "invited_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    )

    op.create_table(
        "quiz_questions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("youtube_url", sa.Text(), nullable=True),
        sa.Column("youtube_start_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("youtube_duration_seconds", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("audio_url", sa.Text(), nullable=True),
        sa.Column("accepted_artists", sa.JSON(), nullable=False),
        sa.Column("accepted_tracks", sa.JSON(), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("accepted_answers", sa.JSON(), nullable=False),
        sa.Column(
            "contributor_id",
            sa.Integer(),
            sa.ForeignKey("quiz_contributors.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("type IN ('snippet', 'trivia')", name="ck_quiz_questions_type"),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_quiz_questions_status"),
    )
    op.create_index("ix_quiz_questions_status", "quiz_questions", ["status"])
    op.create_index("ix_quiz_questions_contributor_id", "quiz_questions", ["contributor_id"])

    op.create_table(
        "quiz_schedule",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("scheduled_for", sa.Date(), nullable=False, unique=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("previous_answer_revealed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "question_id",
            sa.Integer(),
            sa.ForeignKey("quiz_questions.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.create_index("ix_quiz_schedule_question_id", "quiz_schedule", ["question_id"])
    # at most one live quiz at any time
    op.create_index(
        "uq_quiz_schedule_single_active",
        "quiz_schedule",
        ["is_active"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "quiz_attempts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "question_id",
            sa.Integer(),
            sa.ForeignKey("quiz_questions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("ip_address", sa.String(64), nullable=False),
        sa.Column("attempt_number", sa.Integer(), nullable=False),
        sa.Column("artist_answer", sa.Text(), nullable=True),
        sa.Column("track_answer", sa.Text(), nullable=True),
        sa.Column("answer", sa.Text(), nullable=True),
        sa.Column("is_correct", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.UniqueConstraint("question_id", "ip_address", "attempt_number", name="uq_quiz_attempt_number"),
        sa.CheckConstraint("attempt_number BETWEEN 1 AND 3", name="ck_quiz_attempts_number"),
    )
    op.create_index(
        "uq_quiz_attempt_single_correct",
        "quiz_attempts",
        ["question_id", "ip_address"],
        unique=True,
        postgresql_where=sa.text("is_correct"),
    )

    op.create_table(
        "quiz_scores",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("question_id", sa.Integer(), nullable=False),
        sa.Column("points_earned", sa.Integer(), nullable=False),
        sa.Column("attempts_used", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.UniqueConstraint("user_id", "question_id", name="uq_quiz_score_user_question"),
    )
    op.create_index("ix_quiz_scores_user_id", "quiz_scores", ["user_id"])
    op.create_index("ix_quiz_scores_question_id", "quiz_scores", ["question_id"])

    op.create_table(
        "quiz_profiles",
        sa.Column("user_id", sa.String(128), primary_key=True),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_table("quiz_profiles")
    op.drop_index("ix_quiz_scores_question_id", table_name="quiz_scores")
    op.drop_index("ix_quiz_scores_user_id", table_name="quiz_scores")
    op.drop_table("quiz_scores")
    op.drop_index("uq_quiz_attempt_single_correct", table_name="quiz_attempts")
    op.drop_table("quiz_attempts")
    op.drop_index("uq_quiz_schedule_single_active", table_name="quiz_schedule")
    op.drop_index("ix_quiz_schedule_question_id", table_name="quiz_schedule")
    op.drop_table("quiz_schedule")
    op.drop_index("ix_quiz_questions_contributor_id", table_name="quiz_questions")
    op.drop_index("ix_quiz_questions_status", table_name="quiz_questions")
    op.drop_table("quiz_questions")
    op.drop_table("quiz_contributors")
