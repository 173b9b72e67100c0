"""create teams, games, control points, events, participants and scores

Revision ID: 3b7c9d1e2f40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3b7c9d1e2f40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'team',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('color_hex', sa.String(length=7), nullable=False),
        sa.Column('numpad_code_hash', sa.String(length=128), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_team_name', 'team', ['name'], unique=True)

    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_game_status', 'game', ['status'], unique=False)

    op.create_table(
        'control_point',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('position_x', sa.Integer(), nullable=False),
        sa.Column('position_y', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('team_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['team_id'], ['team.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('game_id', 'position_x', 'position_y', name='uq_control_point_position'),
    )
    op.create_index('ix_control_point_game_id', 'control_point', ['game_id'], unique=False)

    op.create_table(
        'game_event',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('control_point_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=16), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('acting_team_id', sa.Integer(), nullable=True),
        sa.Column('previous_owner_team_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['control_point_id'], ['control_point.id']),
        sa.ForeignKeyConstraint(['acting_team_id'], ['team.id']),
        sa.ForeignKeyConstraint(['previous_owner_team_id'], ['team.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_game_event_game_id', 'game_event', ['game_id'], unique=False)
    op.create_index('ix_game_event_control_point_id', 'game_event', ['control_point_id'], unique=False)

    op.create_table(
        'game_participant',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('team_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['team_id'], ['team.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('game_id', 'team_id', name='uq_game_participant'),
    )
    op.create_index('ix_game_participant_game_id', 'game_participant', ['game_id'], unique=False)

    op.create_table(
        'game_score',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('team_id', sa.Integer(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['team_id'], ['team.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_game_score_game_id', 'game_score', ['game_id'], unique=False)


def downgrade():
    op.drop_index('ix_game_score_game_id', table_name='game_score')
    op.drop_table('game_score')
    op.drop_index('ix_game_participant_game_id', table_name='game_participant')
    op.drop_table('game_participant')
    op.drop_index('ix_game_event_control_point_id', table_name='game_event')
    op.drop_index('ix_game_event_game_id', table_name='game_event')
    op.drop_table('game_event')
    op.drop_index('ix_control_point_game_id', table_name='control_point')
    op.drop_table('control_point')
    op.drop_index('ix_game_status', table_name='game')
    op.drop_table('game')
    op.drop_index('ix_team_name', table_name='team')
    op.drop_table('team')
