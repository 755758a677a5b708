"""Create catalog tables with full-text and trigram search support

Revision ID: 3b7d2f1a9c40
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '3b7d2f1a9c40'
down_revision = None
branch_labels = None
depends_on = None

SEARCH_VECTOR_SQL = (
    "to_tsvector('simple', "
    "coalesce(title, '') || ' ' || "
    "coalesce(short_description, '') || ' ' || "
    "coalesce(full_description, ''))"
)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS unaccent")
    op.execute("CREATE EXTENSION IF NOT EXISTS pg_trgm")

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', sa.String(10), nullable=False, server_default='student'),
        sa.Column('avatar', sa.Text()),
        sa.Column('bio', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('categories.id', ondelete='RESTRICT'), nullable=True),
    )
    op.create_index('ix_categories_parent_id', 'categories', ['parent_id'])

    op.create_table(
        'courses',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('short_description', sa.Text()),
        sa.Column('full_description', sa.Text()),
        sa.Column('price', sa.DECIMAL(10, 2), nullable=False),
        sa.Column('promo_price', sa.DECIMAL(10, 2), nullable=True),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('instructor_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('thumbnail', sa.Text()),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_updated', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('is_disabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('search_vector', postgresql.TSVECTOR(), sa.Computed(SEARCH_VECTOR_SQL, persisted=True)),
        sa.Column('search_text_normalized', sa.Text()),
        sa.CheckConstraint('price >= 0', name='courses_price_check'),
        sa.CheckConstraint('promo_price IS NULL OR promo_price >= 0', name='courses_promo_price_check'),
    )
    op.create_index('ix_courses_category_id', 'courses', ['category_id'])
    op.create_index('ix_courses_instructor_id', 'courses', ['instructor_id'])
    op.create_index('ix_courses_last_updated', 'courses', ['last_updated'])
    op.create_index('ix_courses_search_vector', 'courses', ['search_vector'], postgresql_using='gin')
    op.create_index(
        'ix_courses_search_text_trgm', 'courses', ['search_text_normalized'],
        postgresql_using='gin',
        postgresql_ops={'search_text_normalized': 'gin_trgm_ops'},
    )

    # unaccent() is STABLE, not IMMUTABLE, so it cannot back a generated column
    op.execute(
        """
        CREATE OR REPLACE FUNCTION courses_refresh_search_text() RETURNS trigger AS $$
        BEGIN
            NEW.search_text_normalized := unaccent(lower(
                coalesce(NEW.title, '') || ' ' || coalesce(NEW.short_description, '')
            ));
            RETURN NEW;
        END
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_courses_search_text
        BEFORE INSERT OR UPDATE OF title, short_description ON courses
        FOR EACH ROW EXECUTE FUNCTION courses_refresh_search_text();
        """
    )

    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('course_id', sa.Integer(), sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('rating', sa.SmallInteger(), nullable=False),
        sa.Column('comment', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'course_id', name='uq_review_user_course'),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='reviews_rating_check'),
    )
    op.create_index('ix_reviews_course_id', 'reviews', ['course_id'])

    op.create_table(
        'enrollments',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('course_id', sa.Integer(), sa.ForeignKey('courses.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('enrolled_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('is_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index('ix_enrollments_course_id', 'enrollments', ['course_id'])


def downgrade() -> None:
    op.drop_index('ix_enrollments_course_id', table_name='enrollments')
    op.drop_table('enrollments')
    op.drop_index('ix_reviews_course_id', table_name='reviews')
    op.drop_table('reviews')

    op.execute("DROP TRIGGER IF EXISTS trg_courses_search_text ON courses")
    op.execute("DROP FUNCTION IF EXISTS courses_refresh_search_text()")
    op.drop_table('courses')

    op.drop_index('ix_categories_parent_id', table_name='categories')
    op.drop_table('categories')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    # extensions are left installed; other schemas may rely on them
