"""create_deal_health_tables

Revision ID: 5c2d8e41a7b3
Revises:
Create Date: 2026-10-19 09:00:12.418093
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '5c2d8e41a7b3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Apply migration: create_deal_health_tables"""
    op.create_table('deal_stages',
        sa.Column('stage_name', sa.String(length=100), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('is_closed', sa.Boolean(), nullable=False),
        sa.Column('is_won', sa.Boolean(), nullable=False),
        sa.Column('is_lost', sa.Boolean(), nullable=False),
        sa.Column('win_probability', sa.SmallInteger(), nullable=True, comment='Expected win percentage for deals in this stage (0-100)'),
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stage_name')
    )

    op.create_table('deals',
        sa.Column('stage_id', sa.UUID(), nullable=False),
        sa.Column('deal_name', sa.String(length=255), nullable=False),
        sa.Column('deal_notes', sa.Text(), nullable=True),
        sa.Column('value_amount', sa.Numeric(precision=15, scale=2), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('close_date', sa.Date(), nullable=True),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('health_score', sa.SmallInteger(), nullable=True),
        sa.Column('hs_stage_probability', sa.SmallInteger(), nullable=True),
        sa.Column('hs_velocity', sa.SmallInteger(), nullable=True),
        sa.Column('hs_activity_recency', sa.SmallInteger(), nullable=True),
        sa.Column('hs_close_date', sa.SmallInteger(), nullable=True),
        sa.Column('hs_acv', sa.SmallInteger(), nullable=True),
        sa.Column('hs_notes_signal', sa.SmallInteger(), nullable=True),
        sa.Column('health_debug', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='Intermediate values from the last health score calculation'),
        sa.Column('health_scored_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['stage_id'], ['deal_stages.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_deals_stage_id', 'deals', ['stage_id'], unique=False)
    op.create_index('idx_deals_health_score', 'deals', ['health_score'], unique=False)

    op.create_table('notes',
        sa.Column('entity_type', sa.String(length=20), nullable=False),
        sa.Column('entity_id', sa.UUID(), nullable=False),
        sa.Column('note_text', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('id', sa.UUID(), nullable=False),
        sa.CheckConstraint("entity_type in ('account', 'deal', 'contact', 'contract', 'hid')", name='ck_notes_entity_type'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notes_entity', 'notes', ['entity_type', 'entity_id', 'created_at'], unique=False)

    # Default pipeline; win probabilities follow default_win_probability()
    op.execute("""
        INSERT INTO deal_stages (id, stage_name, sort_order, is_closed, is_won, is_lost, win_probability) VALUES
          (gen_random_uuid(), 'Closed Lost',           1, true,  false, true,  0),
          (gen_random_uuid(), 'Solution Qualified',    2, false, false, false, 20),
          (gen_random_uuid(), 'Presenting to EDM',     3, false, false, false, 45),
          (gen_random_uuid(), 'Short Listed',          4, false, false, false, 45),
          (gen_random_uuid(), 'Contract Negotiations', 5, false, false, false, 70),
          (gen_random_uuid(), 'Contract Signed',       6, false, false, false, 70),
          (gen_random_uuid(), 'Implementing',          7, false, false, false, 85),
          (gen_random_uuid(), 'Closed Implemented',    8, true,  true,  false, 100)
        ON CONFLICT (stage_name) DO NOTHING
    """)


def downgrade() -> None:
    """Revert migration: create_deal_health_tables"""
    op.drop_index('ix_notes_entity', table_name='notes')
    op.drop_table('notes')
    op.drop_index('idx_deals_health_score', table_name='deals')
    op.drop_index('ix_deals_stage_id', table_name='deals')
    op.drop_table('deals')
    op.drop_table('deal_stages')
