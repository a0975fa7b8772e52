"""One vendor profile per owner account.

Revision ID: 20261019_0002_unique_vendor_owner
Revises: 20261019_0001_initial_schema
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
from typing import Union


# revision identifiers, used by Alembic.
revision: str = '20261019_0002_unique_vendor_owner'
down_revision: Union[str, None] = '20261019_0001_initial_schema'
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Fails if duplicate profiles already exist; those must be merged by hand first.
    op.drop_index('ix_vendors_user_id', table_name='vendors')
    op.create_index('ix_vendors_user_id', 'vendors', ['user_id'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_vendors_user_id', table_name='vendors')
    op.create_index('ix_vendors_user_id', 'vendors', ['user_id'])
