"""create users, devices, measurements and idempotency keys

Revision ID: 20251101_measurement_tables
Revises:
Create Date: 2025-11-01
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20251101_measurement_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(25), primary_key=True, index=True),
        sa.Column('email', sa.String(255), unique=True, index=True, nullable=True),
        sa.Column('clerk_id', sa.String(255), unique=True, index=True, nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text("timezone('utc', now())")),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text("timezone('utc', now())")),
    )

    op.create_table(
        'devices',
        sa.Column('id', sa.String(25), primary_key=True, index=True),
        sa.Column('device_id', sa.String(64), unique=True, nullable=False, index=True),
        sa.Column('user_id', sa.String(25), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='active', index=True),
        sa.Column('api_key_hash', sa.String(64), unique=True, nullable=True),
        sa.Column('measurement_frequency', sa.Integer(), nullable=False, server_default='1800'),
        sa.Column('active_start_time', sa.String(5), nullable=False, server_default='06:00'),
        sa.Column('active_end_time', sa.String(5), nullable=False, server_default='22:00'),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='America/New_York'),
        sa.Column('last_seen', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text("timezone('utc', now())")),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text("timezone('utc', now())")),
    )
    op.create_index('ix_device_user_created', 'devices', ['user_id', 'created_at'])

    op.create_table(
        'measurements',
        sa.Column('id', sa.String(25), primary_key=True, index=True),
        sa.Column('user_id', sa.String(25), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('device_id', sa.String(64), sa.ForeignKey('devices.device_id'), nullable=False, index=True),
        sa.Column('heart_rate', sa.Integer(), nullable=False),
        sa.Column('spo2', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False, index=True),
        sa.Column('quality', sa.String(8), nullable=False, server_default='good'),
        sa.Column('confidence', sa.Float(), nullable=False, server_default='1.0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text("timezone('utc', now())")),
        sa.CheckConstraint('heart_rate BETWEEN 40 AND 200', name='ck_measurement_heart_rate'),
        sa.CheckConstraint('spo2 BETWEEN 70 AND 100', name='ck_measurement_spo2'),
        sa.CheckConstraint('confidence >= 0 AND confidence <= 1', name='ck_measurement_confidence'),
    )
    op.create_index('ix_measurement_user_time', 'measurements', ['user_id', 'timestamp'])
    op.create_index('ix_measurement_device_time', 'measurements', ['device_id', 'timestamp'])
    op.create_index('ix_measurement_user_device_time', 'measurements', ['user_id', 'device_id', 'timestamp'])

    op.create_table(
        'idempotency_keys',
        sa.Column('id', sa.String(25), primary_key=True, index=True),
        sa.Column('user_id', sa.String(25), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('device_id', sa.String(64), nullable=False),
        sa.Column('endpoint', sa.String(128), nullable=False),
        sa.Column('key_hash', sa.String(64), nullable=False),
        sa.Column('status', sa.String(24), nullable=False, server_default='accepted'),
        sa.Column('resource_id', sa.String(25), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text("timezone('utc', now())")),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'device_id', 'endpoint', 'key_hash', name='uq_idem_user_device_endpoint_key'),
    )
    op.create_index('ix_idem_user_endpoint', 'idempotency_keys', ['user_id', 'endpoint'])


def downgrade() -> None:
    op.drop_index('ix_idem_user_endpoint', table_name='idempotency_keys')
    op.drop_table('idempotency_keys')

    op.drop_index('ix_measurement_user_device_time', table_name='measurements')
    op.drop_index('ix_measurement_device_time', table_name='measurements')
    op.drop_index('ix_measurement_user_time', table_name='measurements')
    op.drop_table('measurements')

    op.drop_index('ix_device_user_created', table_name='devices')
    op.drop_table('devices')

    op.drop_table('users')
