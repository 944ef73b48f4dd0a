from .base import db
from sqlalchemy_serializer import SerializerMixin
from sqlalchemy import true


class RouletteOption(db.Model, SerializerMixin):
    __tablename__ = "roulette"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    state = db.Column(db.Boolean, nullable=False, default=True, server_default=true())
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self):
        return f'<RouletteOption {self.id} {self.name}>'
