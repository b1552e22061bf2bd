"""initial property operations schema

Revision ID: 20260301_0900
Revises:
Create Date: 2026-03-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '20260301_0900'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


user_role = sa.Enum('ADMIN', 'PROPERTY_MANAGER', 'STAFF', name='userrole')
survey_type = sa.Enum('INTERNAL', 'GUEST', name='surveytype')
submission_status = sa.Enum('DRAFT', 'SUBMITTED', 'REVIEWED', name='submissionstatus')
task_status = sa.Enum('OPEN', 'INVESTIGATING', 'CLOSED', name='taskstatus')
sop_frequency = sa.Enum('DAILY', 'WEEKLY', 'MONTHLY', name='sopfrequency')
sop_completion_status = sa.Enum('PENDING', 'COMPLETED', name='sopcompletionstatus')


def timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
    ]


def upgrade() -> None:
    # Tenants, users and properties
    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )
    op.create_index('ix_organizations_id', 'organizations', ['id'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'properties',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('location', sa.Text(), nullable=True),
        sa.Column('primary_pm_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['primary_pm_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code')
    )
    op.create_index('ix_properties_id', 'properties', ['id'])

    op.create_table(
        'property_assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'property_id', name='uq_property_assignments_user_property')
    )
    op.create_index('ix_property_assignments_id', 'property_assignments', ['id'])

    # Survey templates (category -> subcategory -> question tree)
    op.create_table(
        'survey_templates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('survey_type', survey_type, nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['parent_id'], ['survey_templates.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_survey_templates_id', 'survey_templates', ['id'])

    op.create_table(
        'survey_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('template_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('weight', sa.Numeric(precision=5, scale=2), nullable=False, server_default='1.0'),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(['template_id'], ['survey_templates.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_survey_categories_id', 'survey_categories', ['id'])

    op.create_table(
        'survey_subcategories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(['category_id'], ['survey_categories.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_survey_subcategories_id', 'survey_subcategories', ['id'])

    op.create_table(
        'survey_questions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('subcategory_id', sa.Integer(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('scale_min', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('scale_max', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(['subcategory_id'], ['survey_subcategories.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_survey_questions_id', 'survey_questions', ['id'])

    # Submissions and responses
    op.create_table(
        'survey_submissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('template_id', sa.Integer(), nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('submitted_by', sa.Integer(), nullable=True),
        sa.Column('status', submission_status, nullable=False),
        sa.Column('visit_date', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('slug', sa.String(length=255), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('reviewed_by', sa.Integer(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['template_id'], ['survey_templates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['submitted_by'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )
    op.create_index('ix_survey_submissions_id', 'survey_submissions', ['id'])
    op.create_index('idx_survey_submissions_property_visit', 'survey_submissions', ['property_id', 'visit_date'])

    op.create_table(
        'survey_responses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('issue_description', sa.Text(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['submission_id'], ['survey_submissions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['question_id'], ['survey_questions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('submission_id', 'question_id', name='uq_survey_responses_submission_question')
    )
    op.create_index('ix_survey_responses_id', 'survey_responses', ['id'])

    # Tasks derived from low scores
    op.create_table(
        'tasks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column('response_id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', task_status, nullable=False),
        sa.Column('assigned_to', sa.Integer(), nullable=True),
        sa.Column('is_repeat_issue', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('closing_notes', sa.Text(), nullable=True),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.Column('closed_by', sa.Integer(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['submission_id'], ['survey_submissions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['response_id'], ['survey_responses.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['question_id'], ['survey_questions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_to'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['closed_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('response_id')
    )
    op.create_index('ix_tasks_id', 'tasks', ['id'])
    op.create_index('ix_tasks_property_id', 'tasks', ['property_id'])
    op.create_index('ix_tasks_question_id', 'tasks', ['question_id'])

    # SOP checklists
    op.create_table(
        'sop_templates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *timestamps(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sop_templates_id', 'sop_templates', ['id'])

    op.create_table(
        'sop_sections',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('template_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        *timestamps(),
        sa.ForeignKeyConstraint(['template_id'], ['sop_templates.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sop_sections_id', 'sop_sections', ['id'])

    op.create_table(
        'sop_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('template_id', sa.Integer(), nullable=False),
        sa.Column('section_id', sa.Integer(), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        *timestamps(),
        sa.ForeignKeyConstraint(['template_id'], ['sop_templates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['section_id'], ['sop_sections.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sop_items_id', 'sop_items', ['id'])

    op.create_table(
        'sop_assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('template_id', sa.Integer(), nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('frequency', sop_frequency, nullable=False),
        sa.Column('deadline_time', sa.String(length=5), nullable=False),
        sa.Column('deadline_day', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('notify_on_overdue', sa.Boolean(), nullable=False, server_default='false'),
        *timestamps(),
        sa.ForeignKeyConstraint(['template_id'], ['sop_templates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('template_id', 'property_id', 'user_id', name='uq_sop_assignments_template_property_user')
    )
    op.create_index('ix_sop_assignments_id', 'sop_assignments', ['id'])
    op.create_index('ix_sop_assignments_user_id', 'sop_assignments', ['user_id'])

    op.create_table(
        'sop_completions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('assignment_id', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('status', sop_completion_status, nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['assignment_id'], ['sop_assignments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('assignment_id', 'due_date', name='uq_sop_completions_assignment_due_date')
    )
    op.create_index('ix_sop_completions_id', 'sop_completions', ['id'])

    op.create_table(
        'sop_item_completions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('completion_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('is_checked', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('checked_at', sa.DateTime(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['completion_id'], ['sop_completions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['item_id'], ['sop_items.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('completion_id', 'item_id', name='uq_sop_item_completions_completion_item')
    )
    op.create_index('ix_sop_item_completions_id', 'sop_item_completions', ['id'])


def downgrade() -> None:
    op.drop_table('sop_item_completions')
    op.drop_table('sop_completions')
    op.drop_table('sop_assignments')
    op.drop_table('sop_items')
    op.drop_table('sop_sections')
    op.drop_table('sop_templates')
    op.drop_table('tasks')
    op.drop_table('survey_responses')
    op.drop_table('survey_submissions')
    op.drop_table('survey_questions')
    op.drop_table('survey_subcategories')
    op.drop_table('survey_categories')
    op.drop_table('survey_templates')
    op.drop_table('property_assignments')
    op.drop_table('properties')
    op.drop_table('users')
    op.drop_table('organizations')

    for enum_type in (sop_completion_status, sop_frequency, task_status, submission_status, survey_type, user_role):
        enum_type.drop(op.get_bind(), checkfirst=True)
