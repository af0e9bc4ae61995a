"""initial migration

Revision ID: initial_migration
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'initial_migration'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

Id = sa.BigInteger().with_variant(sa.Integer(), 'sqlite')


def upgrade() -> None:
    # document and document_history reference each other; the
    # current_revision_id foreign key is added once both tables exist
    op.create_table('document',
        sa.Column('id', Id, nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('last_modified', sa.DateTime(timezone=True), nullable=False),
        sa.Column('current_revision_id', Id, nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    op.create_table('document_history',
        sa.Column('id', Id, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('document_id', Id, nullable=False),
        sa.Column('modified_by', sa.String(), nullable=False),
        sa.Column('document_data', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['document_id'], ['document.id'], name='fk_document_history_document'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_document_history_document_id'), 'document_history', ['document_id'], unique=False)

    with op.batch_alter_table('document') as batch_op:
        batch_op.create_foreign_key(
            'fk_document_document_history', 'document_history', ['current_revision_id'], ['id']
        )


def downgrade() -> None:
    with op.batch_alter_table('document') as batch_op:
        batch_op.drop_constraint('fk_document_document_history', type_='foreignkey')
    op.drop_index(op.f('ix_document_history_document_id'), table_name='document_history')
    op.drop_table('document_history')
    op.drop_table('document')
