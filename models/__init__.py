from .base import db, metadata
from .users import User
from .likes import Like
from .matches import Match
from .roulette import RouletteOption

__all__ = [
    'db',
    'metadata',
    'User',
    'Like',
    'Match',
    'RouletteOption',
]
