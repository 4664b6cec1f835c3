from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610190900_a1c3e5f7"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('username', sa.String(length=30), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'files',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('owner_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('original_filename', sa.String(), nullable=False),
        sa.Column('media_type', sa.String(), nullable=False, server_default='application/octet-stream'),
        sa.Column('size_bytes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('bucket', sa.String(), nullable=False),
        sa.Column('object_name', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('download_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_files_owner_id', 'files', ['owner_id'])
    op.create_index('ix_files_display_name', 'files', ['display_name'])
    op.create_index(
        'uq_files_owner_display_name_active',
        'files',
        ['owner_id', 'display_name'],
        unique=True,
        sqlite_where=sa.text('is_active = 1'),
        postgresql_where=sa.text('is_active'),
    )

    op.create_table(
        'links',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('display_name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('file_id', sa.String(length=36), sa.ForeignKey('files.id'), nullable=False),
        sa.Column('owner_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('access_limit', sa.Integer(), nullable=True),
        sa.Column('current_access_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('verification_kind', sa.String(length=16), nullable=False, server_default='none'),
        sa.Column('verification_value', sa.String(), nullable=True),
        sa.Column('audience_scope', sa.String(length=16), nullable=False, server_default='public'),
        sa.Column('download_allowed', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('deactivated_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "(verification_kind = 'none' AND verification_value IS NULL) OR "
            "(verification_kind IN ('password', 'username') AND verification_value IS NOT NULL)",
            name='ck_links_verification_pair',
        ),
        sa.CheckConstraint(
            "audience_scope IN ('public', 'users', 'selected')",
            name='ck_links_audience_scope',
        ),
        sa.CheckConstraint(
            'access_limit IS NULL OR access_limit > 0',
            name='ck_links_access_limit_positive',
        ),
    )
    op.create_index('ix_links_display_name', 'links', ['display_name'], unique=True)
    op.create_index('ix_links_file_id', 'links', ['file_id'])
    op.create_index('ix_links_owner_id', 'links', ['owner_id'])
    op.create_index('ix_links_expires_at', 'links', ['expires_at'])
    op.create_index('ix_links_is_active', 'links', ['is_active'])

    op.create_table(
        'link_allowed_users',
        sa.Column('link_id', sa.String(length=32), sa.ForeignKey('links.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'link_access_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('link_id', sa.String(length=32), sa.ForeignKey('links.id', ondelete='CASCADE'), nullable=False),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('requester_id', sa.String(length=36), nullable=True),
        sa.Column('source_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('accessed_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('link_id', 'seq', name='uq_link_access_logs_link_seq'),
    )
    op.create_index('ix_link_access_logs_link_id', 'link_access_logs', ['link_id'])

def downgrade() -> None:
    op.drop_table('link_access_logs')
    op.drop_table('link_allowed_users')
    op.drop_table('links')
    op.drop_table('files')
    op.drop_table('users')
