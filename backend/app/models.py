from datetime import datetime, timezone
from app import db, bcrypt


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Team(db.Model):
    __tablename__ = 'team'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False, index=True)
    color_hex = db.Column(db.String(7), nullable=False, default='#FFFFFF')
    numpad_code_hash = db.Column(db.String(128), nullable=True)

    def set_numpad_code(self, code):
        self.numpad_code_hash = bcrypt.generate_password_hash(code).decode('utf-8')

    def check_numpad_code(self, code):
        if not self.numpad_code_hash or not code:
            return False
        return bcrypt.check_password_hash(self.numpad_code_hash, code)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'color_hex': self.color_hex,
        }


class Game(db.Model):
    __tablename__ = 'game'
    STATUS_SCHEDULED = 'scheduled'
    STATUS_ACTIVE = 'active'
    STATUS_FINISHED = 'finished'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_SCHEDULED, index=True)
    control_points = db.relationship('ControlPoint', back_populates='game', order_by='ControlPoint.id')
    participants = db.relationship('GameParticipant', back_populates='game', order_by='GameParticipant.id')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'status': self.status,
        }


class ControlPoint(db.Model):
    __tablename__ = 'control_point'
    STATUS_INACTIVE = 'inactive'
    STATUS_CONTROLLED = 'controlled'

    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    position_x = db.Column(db.Integer, nullable=False)
    position_y = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_INACTIVE)
    # Owning team; controlled iff not null
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=True)
    game = db.relationship('Game', back_populates='control_points')
    team = db.relationship('Team')

    __table_args__ = (
        db.UniqueConstraint('game_id', 'position_x', 'position_y', name='uq_control_point_position'),
    )

    def set_owner(self, team_id):
        self.team_id = team_id
        self.status = self.STATUS_CONTROLLED if team_id is not None else self.STATUS_INACTIVE

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'position_x': self.position_x,
            'position_y': self.position_y,
            'status': self.status,
            'team_id': self.team_id,
        }


class GameEvent(db.Model):
    """Append-only ownership history. Rows are never updated or deleted."""
    __tablename__ = 'game_event'
    TYPE_CAPTURE = 'capture'
    TYPE_GAME_END = 'game_end'

    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    control_point_id = db.Column(db.Integer, db.ForeignKey('control_point.id'), nullable=False, index=True)
    event_type = db.Column(db.String(16), nullable=False)
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow)
    # Null acting team means the point was made neutral
    acting_team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=True)
    previous_owner_team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'control_point_id': self.control_point_id,
            'event_type': self.event_type,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'acting_team_id': self.acting_team_id,
            'previous_owner_team_id': self.previous_owner_team_id,
        }


class GameParticipant(db.Model):
    __tablename__ = 'game_participant'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False)
    game = db.relationship('Game', back_populates='participants')
    team = db.relationship('Team')

    __table_args__ = (
        db.UniqueConstraint('game_id', 'team_id', name='uq_game_participant'),
    )


class GameScore(db.Model):
    """Latest saved scoreboard row for a team, live while active and final once finished."""
    __tablename__ = 'game_score'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False)
    points = db.Column(db.Integer, nullable=False, default=0)
    team = db.relationship('Team')
