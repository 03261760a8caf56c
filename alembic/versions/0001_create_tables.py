"""create users, projects, bugs and comments

Revision ID: 0001_create_tables
Revises: 
Create Date: 2026-10-17 00:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_create_tables"
down_revision = None
branch_labels = None
depends_on = None

BUG_STATUSES = ("Open", "In Progress", "Resolved", "Closed")
BUG_PRIORITIES = ("Low", "Medium", "High", "Critical")


def upgrade():
    # users
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(50), nullable=False, server_default="User"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # projects
    op.create_table(
        "projects",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("created_by", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assigned_to", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_projects_created_by", "projects", ["created_by"])

    # enums
    bug_status = sa.Enum(*BUG_STATUSES, name="bug_status")
    bug_priority = sa.Enum(*BUG_PRIORITIES, name="bug_priority")
    bug_status.create(op.get_bind(), checkfirst=True)
    bug_priority.create(op.get_bind(), checkfirst=True)

    # bugs
    op.create_table(
        "bugs",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", bug_status, nullable=False, server_default="Open"),
        sa.Column("priority", bug_priority, nullable=False, server_default="Medium"),
        sa.Column("project_id", sa.Integer, sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reported_by", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assigned_to", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_bugs_project_id_status", "bugs", ["project_id", "status"])

    # comments
    op.create_table(
        "comments",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("bug_id", sa.Integer, sa.ForeignKey("bugs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_comments_bug_id", "comments", ["bug_id"])
    op.create_index("ix_comments_user_id", "comments", ["user_id"])


def downgrade():
    op.drop_index("ix_comments_user_id", table_name="comments")
    op.drop_index("ix_comments_bug_id", table_name="comments")
    op.drop_table("comments")

    op.drop_index("ix_bugs_project_id_status", table_name="bugs")
    op.drop_table("bugs")
    sa.Enum(name="bug_priority").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="bug_status").drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_projects_created_by", table_name="projects")
    op.drop_table("projects")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
