from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('profiles',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('username', sa.String(100)),
        sa.Column('rp_balance', sa.Integer, nullable=False, server_default='0'),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
    )

    op.create_table('streaks',
        sa.Column('user_id', sa.String(64), sa.ForeignKey('profiles.id'), primary_key=True),
        sa.Column('current_streak', sa.Integer, nullable=False, server_default='0'),
        sa.Column('longest_streak', sa.Integer, nullable=False, server_default='0'),
        sa.Column('penalty_km', sa.Float, nullable=False, server_default='0'),
        sa.Column('last_run_date', sa.Date),
        sa.Column('last_met_date', sa.Date),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version', sa.Integer, nullable=False, server_default='1'),
    )

    op.create_table('daily_targets',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String(64), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('effective_date', sa.Date, nullable=False),
        sa.Column('target_km', sa.Float, nullable=False),
        sa.UniqueConstraint('user_id', 'effective_date', name='uq_target_day')
    )
    op.create_index('ix_daily_targets_user_id', 'daily_targets', ['user_id'])

    op.create_table('workouts',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String(64), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('distance_km', sa.Float, nullable=False, server_default='0'),
        sa.Column('duration_sec', sa.Integer, nullable=False, server_default='0'),
        sa.Column('calories', sa.Integer),
        sa.Column('route_geojson', sa.Text),
        sa.Column('started_at', sa.DateTime(timezone=True)),
        sa.Column('finished_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_workouts_user_id', 'workouts', ['user_id'])
    op.create_index('idx_workouts_user_date', 'workouts', ['user_id', 'date'])

    shop_items = op.create_table('shop_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('rp_cost', sa.Integer, nullable=False),
        sa.Column('description', sa.String(500)),
    )

    op.create_table('purchases',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String(64), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('item_id', sa.Integer, sa.ForeignKey('shop_items.id'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True)),
        sa.Column('week_of_year', sa.Integer, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_purchases_user_id', 'purchases', ['user_id'])
    op.create_index('ix_purchases_week_of_year', 'purchases', ['week_of_year'])

    op.create_table('friendships',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('requester_id', sa.String(64), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('addressee_id', sa.String(64), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('requester_id', 'addressee_id', name='uq_friendship_pair')
    )
    op.create_index('ix_friendships_requester_id', 'friendships', ['requester_id'])
    op.create_index('ix_friendships_addressee_id', 'friendships', ['addressee_id'])

    op.bulk_insert(shop_items, [
        {'id': 1, 'name': 'Skip Day Card', 'type': 'skip_day', 'rp_cost': 50,
         'description': 'Cancels one missed day. Expires 24 hours after purchase.'},
    ])

def downgrade():
    op.drop_index('ix_friendships_addressee_id', table_name='friendships')
    op.drop_index('ix_friendships_requester_id', table_name='friendships')
    op.drop_table('friendships')
    op.drop_index('ix_purchases_week_of_year', table_name='purchases')
    op.drop_index('ix_purchases_user_id', table_name='purchases')
    op.drop_table('purchases')
    op.drop_table('shop_items')
    op.drop_index('idx_workouts_user_date', table_name='workouts')
    op.drop_index('ix_workouts_user_id', table_name='workouts')
    op.drop_table('workouts')
    op.drop_index('ix_daily_targets_user_id', table_name='daily_targets')
    op.drop_table('daily_targets')
    op.drop_table('streaks')
    op.drop_table('profiles')
