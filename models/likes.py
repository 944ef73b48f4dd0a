from .base import db
from sqlalchemy_serializer import SerializerMixin

REACTION_TYPES = ('LIKE', 'LOVE', 'DISLIKE')
POSITIVE_REACTIONS = frozenset({'LIKE', 'LOVE'})


class Like(db.Model, SerializerMixin):
    __tablename__ = "likes"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    receiver_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    reaction_type = db.Column(db.Enum(*REACTION_TYPES, name='reaction_type'), nullable=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())

    # One reaction per ordered pair; later reactions overwrite it
    __table_args__ = (
        db.UniqueConstraint('sender_id', 'receiver_id', name='uq_like_pair'),
        db.CheckConstraint('sender_id != receiver_id', name='check_no_self_like'),
        db.Index('idx_likes_receiver_sender', 'receiver_id', 'sender_id'),
    )
