"""create sprint lifecycle tables

Revision ID: d4e5f6a7b8c9
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'd4e5f6a7b8c9'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Creates projects, board columns, sprint settings, sprints, tickets and
    the ticket/sprint history ledger.

    Storage guards:
    1. uq_sprints_one_active_per_project: partial unique index, one active sprint per project
    2. uq_ticket_sprint_history_ticket_sprint: one ledger row per (ticket, sprint)
    """
    op.create_table('projects',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_projects_key'), 'projects', ['key'], unique=True)

    op.create_table('board_columns',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('project_id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_board_columns_project_id'), 'board_columns', ['project_id'], unique=False)

    op.create_table('project_sprint_settings',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('project_id', sa.UUID(), nullable=False),
        sa.Column('default_sprint_duration', sa.Integer(), nullable=False),
        sa.Column('done_column_ids', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_project_sprint_settings_project_id'), 'project_sprint_settings', ['project_id'], unique=True)

    op.create_table('sprints',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('project_id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('goal', sa.String(), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('budget', sa.Integer(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('completed_by_id', sa.UUID(), nullable=True),
        sa.Column('completed_ticket_count', sa.Integer(), nullable=True),
        sa.Column('incomplete_ticket_count', sa.Integer(), nullable=True),
        sa.Column('completed_story_points', sa.Integer(), nullable=True),
        sa.Column('incomplete_story_points', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_sprints_project_id'), 'sprints', ['project_id'], unique=False)
    op.create_index(op.f('ix_sprints_status'), 'sprints', ['status'], unique=False)
    op.create_index(
        'uq_sprints_one_active_per_project', 'sprints', ['project_id'], unique=True,
        postgresql_where=sa.text("status = 'active'")
    )

    op.create_table('tickets',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('project_id', sa.UUID(), nullable=False),
        sa.Column('column_id', sa.UUID(), nullable=False),
        sa.Column('sprint_id', sa.UUID(), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('story_points', sa.Integer(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('is_carried_over', sa.Boolean(), nullable=False),
        sa.Column('carried_from_sprint_id', sa.UUID(), nullable=True),
        sa.Column('carried_over_count', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ),
        sa.ForeignKeyConstraint(['column_id'], ['board_columns.id'], ),
        sa.ForeignKeyConstraint(['sprint_id'], ['sprints.id'], ),
        sa.ForeignKeyConstraint(['carried_from_sprint_id'], ['sprints.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_tickets_project_id'), 'tickets', ['project_id'], unique=False)
    op.create_index(op.f('ix_tickets_column_id'), 'tickets', ['column_id'], unique=False)
    op.create_index(op.f('ix_tickets_sprint_id'), 'tickets', ['sprint_id'], unique=False)

    op.create_table('ticket_sprint_history',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('ticket_id', sa.UUID(), nullable=False),
        sa.Column('sprint_id', sa.UUID(), nullable=False),
        sa.Column('entry_type', sa.String(length=32), nullable=False),
        sa.Column('carried_from_sprint_id', sa.UUID(), nullable=True),
        sa.Column('added_at', sa.DateTime(), nullable=False),
        sa.Column('removed_at', sa.DateTime(), nullable=True),
        sa.Column('exit_status', sa.String(length=32), nullable=True),
        sa.ForeignKeyConstraint(['ticket_id'], ['tickets.id'], ),
        sa.ForeignKeyConstraint(['sprint_id'], ['sprints.id'], ),
        sa.ForeignKeyConstraint(['carried_from_sprint_id'], ['sprints.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('ticket_id', 'sprint_id', name='uq_ticket_sprint_history_ticket_sprint')
    )
    op.create_index(op.f('ix_ticket_sprint_history_ticket_id'), 'ticket_sprint_history', ['ticket_id'], unique=False)
    op.create_index(op.f('ix_ticket_sprint_history_sprint_id'), 'ticket_sprint_history', ['sprint_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_ticket_sprint_history_sprint_id'), table_name='ticket_sprint_history')
    op.drop_index(op.f('ix_ticket_sprint_history_ticket_id'), table_name='ticket_sprint_history')
    op.drop_table('ticket_sprint_history')
    op.drop_index(op.f('ix_tickets_sprint_id'), table_name='tickets')
    op.drop_index(op.f('ix_tickets_column_id'), table_name='tickets')
    op.drop_index(op.f('ix_tickets_project_id'), table_name='tickets')
    op.drop_table('tickets')
    op.drop_index('uq_sprints_one_active_per_project', table_name='sprints')
    op.drop_index(op.f('ix_sprints_status'), table_name='sprints')
    op.drop_index(op.f('ix_sprints_project_id'), table_name='sprints')
    op.drop_table('sprints')
    op.drop_index(op.f('ix_project_sprint_settings_project_id'), table_name='project_sprint_settings')
    op.drop_table('project_sprint_settings')
    op.drop_index(op.f('ix_board_columns_project_id'), table_name='board_columns')
    op.drop_table('board_columns')
    op.drop_index(op.f('ix_projects_key'), table_name='projects')
    op.drop_table('projects')
