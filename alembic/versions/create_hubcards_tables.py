"""Create client, cards, buttons, query_params and webhooks tables

Revision ID: create_hubcards_tables
Revises:
Create Date: 2025-06-02 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'create_hubcards_tables'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the connected-account and card/button tables."""
    # Connected HubSpot accounts
    op.create_table('client',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=True),
        sa.Column('hub_id', sa.String(length=64), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('hubspot_client_id', sa.Text(), nullable=True),
        sa.Column('hubspot_client_secret', sa.Text(), nullable=True),
        sa.Column('integration_source', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'hub_id', name='uq_client_user_hub')
    )
    op.create_index(op.f('ix_client_user_id'), 'client', ['user_id'], unique=False)
    op.create_index(op.f('ix_client_hub_id'), 'client', ['hub_id'], unique=False)

    op.create_table('cards',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('buttons',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('card_id', sa.String(length=36), nullable=True),
        sa.Column('button_text', sa.String(length=255), nullable=False),
        sa.Column('button_url', sa.Text(), nullable=True),
        sa.Column('api_url', sa.Text(), nullable=True),
        sa.Column('api_method', sa.String(length=10), nullable=True),
        sa.Column('api_body_template', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['card_id'], ['cards.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_buttons_card_id'), 'buttons', ['card_id'], unique=False)

    op.create_table('query_params',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('button_id', sa.String(length=36), nullable=False),
        sa.Column('key', sa.String(length=255), nullable=True),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['button_id'], ['buttons.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_query_params_button_id'), 'query_params', ['button_id'], unique=False)

    op.create_table('webhooks',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('method', sa.String(length=10), nullable=False),
        sa.Column('body_template', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    """Drop all tables created in upgrade()."""
    op.drop_table('webhooks')
    op.drop_index(op.f('ix_query_params_button_id'), table_name='query_params')
    op.drop_table('query_params')
    op.drop_index(op.f('ix_buttons_card_id'), table_name='buttons')
    op.drop_table('buttons')
    op.drop_table('cards')
    op.drop_index(op.f('ix_client_hub_id'), table_name='client')
    op.drop_index(op.f('ix_client_user_id'), table_name='client')
    op.drop_table('client')
