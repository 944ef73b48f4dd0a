# models/users.py
from sqlalchemy import Column, Integer, String, Text, Boolean, Date, DateTime, Enum, JSON, Index, func, true
from sqlalchemy_serializer import SerializerMixin
from .base import db

USER_TYPES = ('USER', 'ADMIN')
MAX_PHOTOS = 6


class User(db.Model, SerializerMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    state = Column(Boolean, nullable=False, default=True, server_default=true())

    # Profile
    name = Column(String(150), nullable=False, index=True)
    birthdate = Column(Date, nullable=True)
    age = Column(Integer, nullable=True)
    description = Column(Text, nullable=True, default='')
    gender = Column(String(20), nullable=True)
    photos = Column(JSON, nullable=False, default=list)  # Ordered relative paths, max 6

    # Credentials (phone is stored in its normalized 10-digit form)
    phone = Column(String(10), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    type = Column(Enum(*USER_TYPES, name='user_type'), nullable=False, default='USER')

    # Timestamps
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_users_state_type", "state", "type"),
    )

    serialize_rules = ('-password_hash',)

    PUBLIC_FIELDS = ('id', 'state', 'name', 'birthdate', 'age', 'description',
                     'gender', 'phone', 'photos', 'type')

    def to_public_dict(self):
        return self.to_dict(only=self.PUBLIC_FIELDS)

    def __repr__(self):
        return f'<User {self.id} {self.phone}>'


def is_phone_conflict(error) -> bool:
    """True when an IntegrityError comes from the unique phone constraint"""
    message = str(getattr(error, 'orig', error)).lower()
    return 'phone' in message and ('unique' in message or 'duplicate' in message)
