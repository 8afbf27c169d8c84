from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "player",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("original_rating", sa.Integer(), nullable=False),
        sa.Column("previous_rating", sa.Integer(), nullable=True),
        sa.Column("last_rating_update", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("rating BETWEEN 1 AND 10", name="ck_player_rating_range"),
        sa.CheckConstraint(
            "original_rating BETWEEN 1 AND 10", name="ck_player_original_rating_range"
        ),
    )
    op.create_index(
        "uq_player_name_lower",
        "player",
        [sa.text("lower(name)")],
        unique=True,
    )
    op.create_table(
        "match",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("team_a_player1_id", sa.Integer(), nullable=False),
        sa.Column("team_a_player2_id", sa.Integer(), nullable=False),
        sa.Column("team_b_player1_id", sa.Integer(), nullable=False),
        sa.Column("team_b_player2_id", sa.Integer(), nullable=False),
        sa.Column("team_a_score", sa.Integer(), nullable=False),
        sa.Column("team_b_score", sa.Integer(), nullable=False),
        sa.Column("winning_team", sa.String(length=1), nullable=False),
        sa.Column(
            "played_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("winning_team IN ('A', 'B')", name="ck_match_winning_team"),
        sa.CheckConstraint(
            "team_a_score >= 0 AND team_b_score >= 0",
            name="ck_match_scores_non_negative",
        ),
    )
    op.create_index("ix_match_played_at", "match", ["played_at"])


def downgrade():
    op.drop_index("ix_match_played_at", table_name="match")
    op.drop_table("match")
    op.drop_index("uq_player_name_lower", table_name="player")
    op.drop_table("player")
