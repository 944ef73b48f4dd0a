from .base import db
from sqlalchemy_serializer import SerializerMixin
from sqlalchemy import CheckConstraint, true, false

class Match(db.Model, SerializerMixin):
    __tablename__ = "matches"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user1_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    user2_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    state = db.Column(db.Boolean, nullable=False, default=True, server_default=true())
    view_admin = db.Column(db.Boolean, nullable=False, default=False, server_default=false())
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())

    # user1_id is always the smaller ID so a pair can only match once
    __table_args__ = (
        db.UniqueConstraint('user1_id', 'user2_id', name='uq_match_pair'),
        CheckConstraint('user1_id < user2_id', name='check_user_order'),
        db.Index('idx_matches_created', 'created_at'),
    )
