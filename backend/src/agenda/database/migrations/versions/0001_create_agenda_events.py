"""Create agenda_events

Revision ID: 0001
Revises:
Create Date: 2026-01-02 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EVENT_TYPES = ('DEMO', 'MEETING', 'CALL', 'FOLLOWUP', 'SUPPORT', 'INTERNAL')


def upgrade() -> None:
    op.create_table(
        'agenda_events',
        sa.Column('id', sa.String(length=255), primary_key=True),
        sa.Column('owner_id', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column(
            'event_type',
            sa.Enum(*EVENT_TYPES, name='agenda_event_type_enum'),
            nullable=False,
        ),
        sa.Column('location', sa.String(length=500), nullable=True),
        sa.Column('meeting_url', sa.String(length=1000), nullable=True),
        sa.Column('attendees_count', sa.Integer(), nullable=False),
        sa.Column('reminder_minutes', sa.JSON(), nullable=True),
        sa.Column('lead_id', sa.String(length=255), nullable=True),
        sa.Column('client_id', sa.String(length=255), nullable=True),
        # Timestamps are naive UTC
        sa.Column('start_at', sa.DateTime(), nullable=False),
        sa.Column('end_at', sa.DateTime(), nullable=False),
        sa.Column('is_all_day', sa.Boolean(), nullable=False),
        sa.Column('time_zone', sa.String(length=64), nullable=False),
        sa.Column('is_recurring', sa.Boolean(), nullable=False),
        sa.Column('recurrence_rule', sa.Text(), nullable=True),
        sa.Column('recurrence_end', sa.DateTime(), nullable=True),
        sa.Column('exception_dates', sa.JSON(), nullable=True),
        sa.Column('parent_event_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_agenda_event_owner', 'agenda_events', ['owner_id'], unique=False)
    op.create_index(
        'ix_agenda_event_owner_start', 'agenda_events', ['owner_id', 'start_at'], unique=False
    )
    op.create_index('ix_agenda_event_parent', 'agenda_events', ['parent_event_id'], unique=False)
    op.create_index('ix_agenda_event_deleted', 'agenda_events', ['deleted_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_agenda_event_deleted', table_name='agenda_events')
    op.drop_index('ix_agenda_event_parent', table_name='agenda_events')
    op.drop_index('ix_agenda_event_owner_start', table_name='agenda_events')
    op.drop_index('ix_agenda_event_owner', table_name='agenda_events')
    op.drop_table('agenda_events')
    sa.Enum(name='agenda_event_type_enum').drop(op.get_bind(), checkfirst=True)
