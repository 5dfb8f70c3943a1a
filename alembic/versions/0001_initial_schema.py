"""Initial AuthorsLab schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _uuid():
    return postgresql.UUID(as_uuid=True)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'author_profiles',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('auth_user_id', _uuid(), nullable=False),

        # Contact info
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('genre', sa.String(100), nullable=True),
        sa.Column('writing_experience', sa.String(100), nullable=True),

        # Role flags
        sa.Column('role', sa.String(50), nullable=False, server_default='author'),
        sa.Column('is_beta_tester', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by_admin_id', _uuid(), nullable=True),
        sa.Column('onboarding_complete', sa.Boolean(), nullable=False, server_default=sa.false()),

        *_timestamps(),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_author_profiles_auth_user_id', 'author_profiles', ['auth_user_id'], unique=True)
    op.create_index('ix_author_profiles_email', 'author_profiles', ['email'])

    op.create_table(
        'manuscripts',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('author_id', _uuid(), sa.ForeignKey('author_profiles.id'), nullable=False),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('genre', sa.String(100), nullable=True),
        sa.Column('current_word_count', sa.Integer(), server_default='0'),
        sa.Column('total_chapters', sa.Integer(), server_default='0'),
        sa.Column('has_prologue', sa.Boolean(), server_default=sa.false()),
        sa.Column('has_epilogue', sa.Boolean(), server_default=sa.false()),
        sa.Column('full_text', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('current_phase_number', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
    )
    op.create_index('ix_manuscripts_author_id', 'manuscripts', ['author_id'])

    op.create_table(
        'chapters',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('manuscript_id', _uuid(), sa.ForeignKey('manuscripts.id'), nullable=False),
        sa.Column('chapter_number', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(500), server_default=''),
        sa.Column('content', sa.Text(), server_default=''),
        sa.Column('word_count', sa.Integer(), server_default='0'),
        sa.Column('status', sa.String(50), server_default='draft'),

        # Phase approvals
        sa.Column('phase_1_approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('phase_2_approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('phase_3_approved_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('manuscript_id', 'chapter_number', name='uq_chapters_manuscript_number'),
    )
    op.create_index('ix_chapters_manuscript_id', 'chapters', ['manuscript_id'])

    op.create_table(
        'editing_phases',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('manuscript_id', _uuid(), sa.ForeignKey('manuscripts.id'), nullable=False),
        sa.Column('phase_number', sa.Integer(), nullable=False),
        sa.Column('phase_name', sa.String(50), nullable=False),
        sa.Column('editor_name', sa.String(100), nullable=False),
        sa.Column('phase_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('chapters_analyzed', sa.Integer(), server_default='0'),
        sa.Column('chapters_approved', sa.Integer(), server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.UniqueConstraint('manuscript_id', 'phase_number', name='uq_editing_phases_manuscript_phase'),
    )
    op.create_index('ix_editing_phases_manuscript_id', 'editing_phases', ['manuscript_id'])
    # At most one active phase per manuscript
    op.create_index(
        'uq_editing_phases_one_active',
        'editing_phases',
        ['manuscript_id'],
        unique=True,
        postgresql_where=sa.text("phase_status = 'active'"),
    )

    op.create_table(
        'manuscript_versions',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('manuscript_id', _uuid(), sa.ForeignKey('manuscripts.id'), nullable=False),
        sa.Column('phase_number', sa.Integer(), nullable=False),
        sa.Column('version_type', sa.String(50), nullable=False, server_default='approved_snapshot'),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('word_count', sa.Integer(), server_default='0'),
        sa.Column('file_url', sa.String(1000), nullable=True),
        sa.Column('created_by_editor', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )
    op.create_index('ix_manuscript_versions_manuscript_id', 'manuscript_versions', ['manuscript_id'])

    op.create_table(
        'publishing_progress',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('manuscript_id', _uuid(), sa.ForeignKey('manuscripts.id'), nullable=False),
        sa.Column('current_step', sa.String(50), server_default='assessment'),
        sa.Column('completed_steps', sa.JSON(), nullable=True),

        # Assessment
        sa.Column('assessment_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('assessment_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('assessment_answers', sa.JSON(), nullable=True),
        sa.Column('publishing_plan', sa.Text(), nullable=True),

        # Covers
        sa.Column('cover_designs', sa.JSON(), nullable=True),
        sa.Column('selected_cover_id', sa.Integer(), nullable=True),
        sa.Column('cover_selected_at', sa.DateTime(timezone=True), nullable=True),

        sa.Column('step_data', sa.JSON(), nullable=True),
        sa.Column('front_matter', sa.JSON(), nullable=True),
        sa.Column('back_matter', sa.JSON(), nullable=True),

        # Milestones
        sa.Column('formatting_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('metadata_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('all_steps_completed_at', sa.DateTime(timezone=True), nullable=True),

        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
    )
    op.create_index('ix_publishing_progress_manuscript_id', 'publishing_progress', ['manuscript_id'], unique=True)

    op.create_table(
        'user_purchases',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('author_id', _uuid(), sa.ForeignKey('author_profiles.id'), nullable=False),
        sa.Column('manuscript_id', _uuid(), sa.ForeignKey('manuscripts.id'), nullable=True),
        sa.Column('package', sa.String(50), nullable=False),
        sa.Column('amount_cents', sa.Integer(), server_default='0'),
        sa.Column('currency', sa.String(10), server_default='usd'),
        sa.Column('status', sa.String(20), nullable=False, server_default='completed'),
        sa.Column('stripe_session_id', sa.String(255), nullable=False, unique=True),
        sa.Column('stripe_payment_intent_id', sa.String(255), nullable=True),
        sa.Column('stripe_customer_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )
    op.create_index('ix_user_purchases_author_id', 'user_purchases', ['author_id'])

    op.create_table(
        'beta_feedback',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('author_id', _uuid(), sa.ForeignKey('author_profiles.id'), nullable=False),
        sa.Column('manuscript_id', _uuid(), sa.ForeignKey('manuscripts.id'), nullable=True),
        sa.Column('feedback_text', sa.Text(), nullable=False),
        sa.Column('page_url', sa.String(1000), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.CheckConstraint('rating IS NULL OR rating BETWEEN 1 AND 5', name='ck_beta_feedback_rating'),
    )
    op.create_index('ix_beta_feedback_author_id', 'beta_feedback', ['author_id'])

    op.create_table(
        'editor_chat_history',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('manuscript_id', _uuid(), sa.ForeignKey('manuscripts.id'), nullable=False),
        sa.Column('phase_number', sa.Integer(), nullable=False),
        sa.Column('chapter_number', sa.Integer(), nullable=True),
        sa.Column('sender', sa.String(20), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )
    op.create_index('ix_editor_chat_history_manuscript_id', 'editor_chat_history', ['manuscript_id'])


def downgrade() -> None:
    op.drop_table('editor_chat_history')
    op.drop_table('beta_feedback')
    op.drop_table('user_purchases')
    op.drop_table('publishing_progress')
    op.drop_table('manuscript_versions')
    op.drop_index('uq_editing_phases_one_active', table_name='editing_phases')
    op.drop_table('editing_phases')
    op.drop_table('chapters')
    op.drop_table('manuscripts')
    op.drop_table('author_profiles')
