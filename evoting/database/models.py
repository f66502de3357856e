# evoting/database/models.py

from datetime import datetime, timezone
from enum import Enum

from evoting import db


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ElectionStatus(str, Enum):
    DRAFT = 'draft'
    ACTIVE = 'active'
    COMPLETED = 'completed'


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(150), unique=True, nullable=False)
    password_hash = db.Column(db.String(200), nullable=False)  # Argon2id
    role = db.Column(db.String(20), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.CheckConstraint("role IN ('superadmin', 'admin')", name='ck_users_role'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'role': self.role,
            'created_at': _iso(self.created_at),
        }


class Election(db.Model):
    __tablename__ = 'elections'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=ElectionStatus.DRAFT.value)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    candidates = db.relationship('Candidate', backref='election', lazy=True,
                                 cascade='all, delete-orphan', passive_deletes=True,
                                 order_by='Candidate.order_num')

    __table_args__ = (
        db.CheckConstraint("status IN ('draft', 'active', 'completed')", name='ck_elections_status'),
    )

    @property
    def is_active(self):
        return self.status == ElectionStatus.ACTIVE.value

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'status': self.status,
            'created_by': self.created_by,
        }


class Candidate(db.Model):
    __tablename__ = 'candidates'
    id = db.Column(db.Integer, primary_key=True)
    election_id = db.Column(db.Integer, db.ForeignKey('elections.id', ondelete='CASCADE'),
                            nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    photo_url = db.Column(db.String(500), nullable=True)
    order_num = db.Column(db.Integer, nullable=False, default=0)  # display order only
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'election_id': self.election_id,
            'name': self.name,
            'description': self.description,
            'photo_url': self.photo_url,
            'order': self.order_num,
        }


class VotingToken(db.Model):
    __tablename__ = 'voting_tokens'
    id = db.Column(db.Integer, primary_key=True)
    election_id = db.Column(db.Integer, db.ForeignKey('elections.id', ondelete='CASCADE'),
                            nullable=False, index=True)
    token = db.Column(db.String(64), unique=True, nullable=False)
    is_used = db.Column(db.Boolean, nullable=False, default=False)
    used_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'election_id': self.election_id,
            'token': self.token,
            'is_used': self.is_used,
            'used_at': _iso(self.used_at),
            'created_at': _iso(self.created_at),
        }

    def __repr__(self):
        # keep the bearer string out of logs
        return f'<VotingToken {self.id} election={self.election_id} used={self.is_used}>'


class Vote(db.Model):
    __tablename__ = 'votes'
    id = db.Column(db.Integer, primary_key=True)
    election_id = db.Column(db.Integer, db.ForeignKey('elections.id', ondelete='CASCADE'),
                            nullable=False, index=True)
    candidate_id = db.Column(db.Integer, db.ForeignKey('candidates.id', ondelete='CASCADE'),
                             nullable=False, index=True)
    token_id = db.Column(db.Integer, db.ForeignKey('voting_tokens.id', ondelete='CASCADE'),
                         nullable=False)
    voted_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (
        # at most one ballot per token, enforced by the store itself
        db.UniqueConstraint('token_id', name='uq_votes_token_id'),
    )

    def __repr__(self):
        return f'<Vote {self.id} election={self.election_id} candidate={self.candidate_id}>'


class ElectionAdmin(db.Model):
    __tablename__ = 'election_admins'
    id = db.Column(db.Integer, primary_key=True)
    election_id = db.Column(db.Integer, db.ForeignKey('elections.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    assigned_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint('election_id', 'user_id', name='uq_election_admins_pair'),
    )


def _iso(value):
    return value.isoformat() if value else None
