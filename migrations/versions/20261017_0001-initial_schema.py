"""Initial schema: tenants, clients, funding containers, agreements, contracts, catalog, ledger, audit.

Revision ID: a1c4f0e2b7d9
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision: str = 'a1c4f0e2b7d9'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(JSONB(), 'postgresql')


def money(name, nullable=False, **kwargs):
    return sa.Column(name, sa.Numeric(precision=15, scale=2), nullable=nullable, **kwargs)


def ledger_columns():
    """Balance-bearing columns shared by client_buckets and contract_boxes."""
    return [
        sa.Column('category', sa.String(), nullable=False),
        money('allocated_amount', server_default='0'),
        money('credit_limit', server_default='0'),
        money('current_balance', server_default='0'),
        money('spent_amount', server_default='0'),
        sa.Column('characteristics', JSON, nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('period_start', sa.Date(), nullable=True),
        sa.Column('period_end', sa.Date(), nullable=True),
        sa.Column('rollover_count', sa.Integer(), nullable=False, server_default='0'),
    ]


def timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # Tenancy
    op.create_table(
        'organizations',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('abn', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('plan', sa.String(), nullable=False, server_default='starter'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='staff'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_organization_id', 'users', ['organization_id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Clients
    op.create_table(
        'clients',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('emergency_contact_name', sa.String(), nullable=True),
        sa.Column('emergency_contact_phone', sa.String(), nullable=True),
        sa.Column('medical_conditions', JSON, nullable=True),
        sa.Column('medications', JSON, nullable=True),
        sa.Column('support_goals', JSON, nullable=True),
        sa.Column('funding_type', sa.String(), nullable=False, server_default='sah'),
        sa.Column('sah_classification_level', sa.Integer(), nullable=True),
        money('plan_budget', nullable=True),
        sa.Column('medicare_number', sa.String(), nullable=True),
        sa.Column('pension_type', sa.String(), nullable=True),
        sa.Column('myagedcare_number', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='prospect'),
        sa.Column('notes', sa.Text(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_clients_organization_id', 'clients', ['organization_id'])
    op.create_index('ix_clients_org_status', 'clients', ['organization_id', 'status'])

    # Funding definitions
    op.create_table(
        'bucket_templates',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('funding_source', sa.String(), nullable=False),
        money('starting_amount', nullable=True),
        money('credit_limit', nullable=True),
        sa.Column('characteristics', JSON, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('auto_provision', sa.Boolean(), nullable=False, server_default=sa.true()),
        *timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bucket_templates_organization_id', 'bucket_templates', ['organization_id'])

    op.create_table(
        'client_buckets',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('client_id', sa.String(), nullable=False),
        sa.Column('template_id', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('funding_source', sa.String(), nullable=True),
        *ledger_columns(),
        *timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['template_id'], ['bucket_templates.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_client_buckets_organization_id', 'client_buckets', ['organization_id'])
    op.create_index('ix_client_buckets_client_id', 'client_buckets', ['client_id'])
    op.create_index('ix_client_buckets_template_id', 'client_buckets', ['template_id'])
    op.create_index('ix_client_buckets_client_status', 'client_buckets', ['client_id', 'status'])

    # Agreements
    op.create_table(
        'service_agreements',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('client_id', sa.String(), nullable=False),
        sa.Column('agreement_number', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='draft'),
        sa.Column('allocation_policy', sa.String(), nullable=False, server_default='sum_of_buckets'),
        money('fixed_total_value', nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('review_date', sa.Date(), nullable=True),
        sa.Column('billing_frequency', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('extra_terms', JSON, nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'agreement_number', name='uq_agreement_number'),
    )
    op.create_index('ix_service_agreements_organization_id', 'service_agreements', ['organization_id'])
    op.create_index('ix_service_agreements_client_id', 'service_agreements', ['client_id'])

    op.create_table(
        'agreement_buckets',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('agreement_id', sa.String(), nullable=False),
        sa.Column('bucket_id', sa.String(), nullable=False),
        sa.Column('custom_name', sa.String(), nullable=True),
        money('custom_amount', nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['agreement_id'], ['service_agreements.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['bucket_id'], ['client_buckets.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('agreement_id', 'bucket_id', name='uq_agreement_bucket'),
    )
    op.create_index('ix_agreement_buckets_agreement_id', 'agreement_buckets', ['agreement_id'])
    op.create_index('ix_agreement_buckets_bucket_id', 'agreement_buckets', ['bucket_id'])

    # Contracts
    op.create_table(
        'contracts',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('client_id', sa.String(), nullable=False),
        sa.Column('contract_number', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='draft'),
        sa.Column('allocation_policy', sa.String(), nullable=False, server_default='sum_of_buckets'),
        money('fixed_total_value', nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'contract_number', name='uq_contract_number'),
    )
    op.create_index('ix_contracts_organization_id', 'contracts', ['organization_id'])
    op.create_index('ix_contracts_client_id', 'contracts', ['client_id'])

    op.create_table(
        'contract_boxes',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('contract_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('service_category', sa.String(), nullable=True),
        *ledger_columns(),
        *timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['contract_id'], ['contracts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_contract_boxes_organization_id', 'contract_boxes', ['organization_id'])
    op.create_index('ix_contract_boxes_contract_id', 'contract_boxes', ['contract_id'])

    # Catalog
    op.create_table(
        'services',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('service_code', sa.String(), nullable=True),
        money('base_cost'),
        sa.Column('cost_currency', sa.String(), nullable=False, server_default='AUD'),
        sa.Column('unit', sa.String(), nullable=False, server_default='hour'),
        sa.Column('has_variable_pricing', sa.Boolean(), nullable=False, server_default=sa.false()),
        money('min_cost', nullable=True),
        money('max_cost', nullable=True),
        sa.Column('is_taxable', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('tax_rate', sa.Numeric(precision=5, scale=2), nullable=False, server_default='0'),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('subcategory', sa.String(), nullable=True),
        sa.Column('tags', JSON, nullable=False),
        sa.Column('allow_discount', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_be_cancelled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('requires_approval', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(), nullable=False, server_default='draft'),
        *timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_services_organization_id', 'services', ['organization_id'])
    op.create_index('ix_services_service_code', 'services', ['service_code'])

    # Ledger
    op.create_table(
        'transactions',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('client_id', sa.String(), nullable=False),
        sa.Column('agreement_id', sa.String(), nullable=True),
        sa.Column('contract_id', sa.String(), nullable=True),
        sa.Column('bucket_id', sa.String(), nullable=True),
        sa.Column('box_id', sa.String(), nullable=True),
        sa.Column('transaction_type', sa.String(), nullable=False),
        sa.Column('direction', sa.String(), nullable=False),
        money('amount'),
        money('requested_amount'),
        money('balance_after'),
        sa.Column('sequence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reference_type', sa.String(), nullable=False, server_default='manual_adjustment'),
        sa.Column('service_id', sa.String(), nullable=True),
        money('unit_cost', nullable=True),
        sa.Column('quantity', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('transaction_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='completed'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['agreement_id'], ['service_agreements.id']),
        sa.ForeignKeyConstraint(['contract_id'], ['contracts.id']),
        sa.ForeignKeyConstraint(['bucket_id'], ['client_buckets.id']),
        sa.ForeignKeyConstraint(['box_id'], ['contract_boxes.id']),
        sa.ForeignKeyConstraint(['service_id'], ['services.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_transactions_organization_id', 'transactions', ['organization_id'])
    op.create_index('ix_transactions_client_id', 'transactions', ['client_id'])
    op.create_index('ix_transactions_agreement_id', 'transactions', ['agreement_id'])
    op.create_index('ix_transactions_contract_id', 'transactions', ['contract_id'])
    op.create_index('ix_transactions_bucket_id', 'transactions', ['bucket_id'])
    op.create_index('ix_transactions_box_id', 'transactions', ['box_id'])
    op.create_index('ix_transactions_bucket_created', 'transactions', ['bucket_id', 'created_at'])
    op.create_index('ix_transactions_box_created', 'transactions', ['box_id', 'created_at'])

    op.create_table(
        'bucket_alerts',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('bucket_id', sa.String(), nullable=True),
        sa.Column('box_id', sa.String(), nullable=True),
        sa.Column('characteristic_id', sa.String(), nullable=False),
        money('threshold'),
        sa.Column('utilization', sa.Numeric(precision=7, scale=2), nullable=False),
        money('balance'),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('transaction_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['bucket_id'], ['client_buckets.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['box_id'], ['contract_boxes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bucket_alerts_organization_id', 'bucket_alerts', ['organization_id'])
    op.create_index('ix_bucket_alerts_bucket_id', 'bucket_alerts', ['bucket_id'])
    op.create_index('ix_bucket_alerts_box_id', 'bucket_alerts', ['box_id'])

    # Audit trail
    op.create_table(
        'form_configs',
        'audit_logs',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('field_name', sa.String(), nullable=True),
        sa.Column('old_value', JSON, nullable=True),
        sa.Column('new_value', JSON, nullable=True),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('source', sa.String(), nullable=False, server_default='api'),
        sa.Column('extra_data', JSON, nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_organization_id', 'audit_logs', ['organization_id'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])
    op.create_index('ix_audit_log_entity', 'audit_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_audit_log_org_time', 'audit_logs', ['organization_id', 'created_at'])

    # Client form configuration
    op.create_table(
        'form_configs',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('organization_id', sa.String(), nullable=False),
        sa.Column('config', JSON, nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id'),
    )


def downgrade() -> None:
    # Drop in reverse dependency order; indexes go with their tables
    for table in (
        'form_configs',
        'audit_logs',
        'bucket_alerts',
        'transactions',
        'services',
        'contract_boxes',
        'contracts',
        'agreement_buckets',
        'service_agreements',
        'client_buckets',
        'bucket_templates',
        'clients',
        'users',
        'organizations',
    ):
        op.drop_table(table)
