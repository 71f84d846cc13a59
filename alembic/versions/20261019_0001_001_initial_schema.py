"""Initial schema - users, projects, tasks, notifications, reminders and activity.

Revision ID: 001
Revises: None
Create Date: 2026-10-19

Enum columns store the member names (SQLAlchemy's default for SQLModel
enum fields), e.g. tasks.status = 'IN_PROGRESS' for "En progreso".
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create enums in PostgreSQL
    op.execute("CREATE TYPE userrole AS ENUM ('ADMIN', 'TUTOR', 'STUDENT')")
    op.execute("CREATE TYPE projectstatus AS ENUM ('PLANNING', 'IN_PROGRESS', 'COMPLETED', 'PAUSED')")
    op.execute("CREATE TYPE taskstatus AS ENUM ('PENDING', 'IN_PROGRESS', 'COMPLETED', 'BLOCKED')")
    op.execute("CREATE TYPE priority AS ENUM ('LOW', 'MEDIUM', 'HIGH')")
    op.execute("CREATE TYPE tasktype AS ENUM ('DAILY', 'PROJECT')")

    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            username VARCHAR(255) NOT NULL UNIQUE,
            hashed_password VARCHAR(255) NOT NULL,
            role userrole NOT NULL DEFAULT 'STUDENT',
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        CREATE INDEX IF NOT EXISTS ix_users_username ON users(username);
        CREATE INDEX IF NOT EXISTS ix_users_role ON users(role);
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS projects (
            id SERIAL PRIMARY KEY,
            name VARCHAR(255) NOT NULL,
            description VARCHAR(1000),
            start_date TIMESTAMP,
            end_date TIMESTAMP,
            status projectstatus NOT NULL DEFAULT 'PLANNING',
            tutor_id INTEGER REFERENCES users(id),
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        CREATE INDEX IF NOT EXISTS ix_projects_end_date ON projects(end_date);
        CREATE INDEX IF NOT EXISTS ix_projects_status ON projects(status);
        CREATE INDEX IF NOT EXISTS ix_projects_tutor_id ON projects(tutor_id);
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS project_participants (
            project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            PRIMARY KEY (project_id, user_id)
        );
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS tasks (
            id SERIAL PRIMARY KEY,
            name VARCHAR(255) NOT NULL,
            description VARCHAR(1000),
            due_date TIMESTAMP,
            priority priority NOT NULL DEFAULT 'MEDIUM',
            status taskstatus NOT NULL DEFAULT 'PENDING',
            type tasktype NOT NULL DEFAULT 'PROJECT',
            project_id INTEGER REFERENCES projects(id),
            responsible_id INTEGER REFERENCES users(id),
            tutor_id INTEGER REFERENCES users(id),
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        CREATE INDEX IF NOT EXISTS ix_tasks_due_date ON tasks(due_date);
        CREATE INDEX IF NOT EXISTS ix_tasks_status ON tasks(status);
        CREATE INDEX IF NOT EXISTS ix_tasks_project_id ON tasks(project_id);
        CREATE INDEX IF NOT EXISTS ix_tasks_responsible_id ON tasks(responsible_id);
        CREATE INDEX IF NOT EXISTS ix_tasks_tutor_id ON tasks(tutor_id);
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id),
            message TEXT NOT NULL,
            type VARCHAR(50) NOT NULL,
            is_read BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            related_id INTEGER,
            related_type VARCHAR(50)
        );
        CREATE INDEX IF NOT EXISTS ix_notifications_user_id ON notifications(user_id);
        CREATE INDEX IF NOT EXISTS ix_notifications_type ON notifications(type);
        CREATE INDEX IF NOT EXISTS ix_notifications_is_read ON notifications(is_read);
        CREATE INDEX IF NOT EXISTS ix_notifications_created_at ON notifications(created_at);
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS reminders (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id),
            title VARCHAR(255) NOT NULL,
            description VARCHAR(1000),
            scheduled_at TIMESTAMP NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            related_id INTEGER,
            related_type VARCHAR(50),
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            fired_at TIMESTAMP
        );
        CREATE INDEX IF NOT EXISTS ix_reminders_user_id ON reminders(user_id);
        CREATE INDEX IF NOT EXISTS ix_reminders_scheduled_at ON reminders(scheduled_at);
        CREATE INDEX IF NOT EXISTS ix_reminders_is_active ON reminders(is_active);
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS activity_logs (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id),
            action VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id INTEGER,
            details VARCHAR(1000),
            old_values JSON,
            new_values JSON,
            timestamp TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        CREATE INDEX IF NOT EXISTS ix_activity_logs_user_id ON activity_logs(user_id);
        CREATE INDEX IF NOT EXISTS ix_activity_logs_action ON activity_logs(action);
        CREATE INDEX IF NOT EXISTS ix_activity_logs_entity_type ON activity_logs(entity_type);
        CREATE INDEX IF NOT EXISTS ix_activity_logs_entity_id ON activity_logs(entity_id);
        CREATE INDEX IF NOT EXISTS ix_activity_logs_timestamp ON activity_logs(timestamp);
    """)


def downgrade() -> None:
    # Drop tables in reverse order
    op.execute("DROP TABLE IF EXISTS activity_logs CASCADE")
    op.execute("DROP TABLE IF EXISTS reminders CASCADE")
    op.execute("DROP TABLE IF EXISTS notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS tasks CASCADE")
    op.execute("DROP TABLE IF EXISTS project_participants CASCADE")
    op.execute("DROP TABLE IF EXISTS projects CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")

    # Drop enums
    op.execute("DROP TYPE IF EXISTS tasktype")
    op.execute("DROP TYPE IF EXISTS priority")
    op.execute("DROP TYPE IF EXISTS taskstatus")
    op.execute("DROP TYPE IF EXISTS projectstatus")
    op.execute("DROP TYPE IF EXISTS userrole")
