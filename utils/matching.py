import logging
from typing import Dict, List, Optional, Tuple
from sqlalchemy import select, func, and_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import aliased
from models import db, User, Like, Match
from models.likes import REACTION_TYPES, POSITIVE_REACTIONS
from utils.cache import CacheManager
from utils.errors import ApiError, ValidationError, NotFound, Unavailable

logger = logging.getLogger(__name__)


def _dialect_insert(model):
    """
    Return an INSERT construct supporting ON CONFLICT for the bound database.
    Both PostgreSQL and SQLite (>= 3.24) understand the same clause.
    """
    dialect = db.session.get_bind().dialect.name
    if dialect == 'postgresql':
        return postgresql.insert(model)
    if dialect == 'sqlite':
        return sqlite.insert(model)
    raise Unavailable(f"Upserts are not supported on {dialect}")


def canonical_pair(user_a: int, user_b: int) -> Tuple[int, int]:
    """Order a pair of user IDs so the smaller one comes first"""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


def normalize_reaction_type(reaction_type) -> str:
    if not reaction_type or not isinstance(reaction_type, str):
        raise ValidationError("reactionType is required")
    normalized = reaction_type.strip().upper()
    if normalized not in REACTION_TYPES:
        raise ValidationError(
            f"Invalid reactionType. Must be one of {', '.join(REACTION_TYPES)}"
        )
    return normalized


def _upsert_reaction(sender_id: int, receiver_id: int, reaction_type: str) -> Like:
    stmt = _dialect_insert(Like).values(
        sender_id=sender_id,
        receiver_id=receiver_id,
        reaction_type=reaction_type,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Like.sender_id, Like.receiver_id],
        set_={
            'reaction_type': stmt.excluded.reaction_type,
            'updated_at': func.now(),
        },
    ).returning(Like.id)

    like_id = db.session.execute(stmt).scalar_one()
    return db.session.execute(
        select(Like).where(Like.id == like_id).execution_options(populate_existing=True)
    ).scalar_one()


def _insert_match(sender_id: int, receiver_id: int) -> Optional[Match]:
    """Insert the canonical pair; None when the pair was already matched"""
    user1_id, user2_id = canonical_pair(sender_id, receiver_id)
    stmt = _dialect_insert(Match).values(
        user1_id=user1_id,
        user2_id=user2_id,
    ).on_conflict_do_nothing(
        index_elements=[Match.user1_id, Match.user2_id],
    ).returning(Match.id)

    match_id = db.session.execute(stmt).scalar_one_or_none()
    if match_id is None:
        return None
    return db.session.get(Match, match_id)


def pair_lock_query(user_a: int, user_b: int):
    """
    Lock both user rows, lowest id first. Concurrent reactions within the
    same pair wait on each other, so the later one sees the earlier edge.
    """
    return (
        select(User.id)
        .where(User.id.in_([user_a, user_b]))
        .order_by(User.id)
        .with_for_update()
    )


def react(sender_id: int, receiver_id: int, reaction_type: str) -> Tuple[Like, Optional[Match]]:
    """
    Record sender's reaction towards receiver and create a match when both
    sides are positive.

    The upsert, the reciprocity check and the match insert run in a single
    transaction holding row locks on both users, so a reciprocal reaction
    arriving concurrently waits and then sees this one. The unique canonical
    pair still guarantees a single match row; a call that finds the pair
    already matched reports match=None.

    Returns:
        (reaction, match) where match is only set when it was inserted by this call
    """
    reaction_type = normalize_reaction_type(reaction_type)
    if sender_id == receiver_id:
        raise ValidationError("Cannot react to yourself")

    try:
        found = db.session.execute(pair_lock_query(sender_id, receiver_id)).scalars().all()
        if len(found) != 2:
            raise NotFound("User not found")

        reaction = _upsert_reaction(sender_id, receiver_id, reaction_type)

        match = None
        if reaction_type in POSITIVE_REACTIONS:
            reverse = db.session.execute(
                select(Like.id).where(
                    Like.sender_id == receiver_id,
                    Like.receiver_id == sender_id,
                    Like.reaction_type.in_(POSITIVE_REACTIONS),
                )
            ).first()
            if reverse is not None:
                match = _insert_match(sender_id, receiver_id)

        db.session.commit()
    except ApiError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error recording reaction {sender_id} -> {receiver_id}: {str(e)}")
        raise Unavailable() from e

    logger.info(f"Reaction {reaction_type}: {sender_id} -> {receiver_id}")
    if match is not None:
        logger.info(f"Match {match.id} created between {match.user1_id} and {match.user2_id}")

    CacheManager.invalidate_available_users()
    return reaction, match


def mark_match_viewed(match_id: int, viewed: bool = True) -> Match:
    match = db.session.get(Match, match_id)
    if not match:
        raise NotFound("Match not found")
    match.view_admin = viewed
    db.session.commit()
    logger.info(f"Match {match_id} marked viewed={viewed}")
    return match


def _format_timestamp(value):
    return value.isoformat() if value else None


def list_matches(page: int = 0, limit: int = 4, viewed: Optional[bool] = None) -> Dict:
    """
    Page through matches, newest first, with both participants' public fields
    and each side's current reaction towards the other.
    """
    u1 = aliased(User)
    u2 = aliased(User)
    l1 = aliased(Like)
    l2 = aliased(Like)

    query = (
        select(
            Match,
            u1, u2,
            l1.reaction_type.label('user1_reaction'),
            l2.reaction_type.label('user2_reaction'),
        )
        .join(u1, Match.user1_id == u1.id)
        .join(u2, Match.user2_id == u2.id)
        .outerjoin(l1, and_(l1.sender_id == Match.user1_id, l1.receiver_id == Match.user2_id))
        .outerjoin(l2, and_(l2.sender_id == Match.user2_id, l2.receiver_id == Match.user1_id))
    )
    count_query = select(func.count(Match.id))

    if viewed is not None:
        query = query.where(Match.view_admin.is_(viewed))
        count_query = count_query.where(Match.view_admin.is_(viewed))

    query = (
        query.order_by(Match.created_at.desc(), Match.id.desc())
        .limit(limit)
        .offset(page * limit)
    )

    items = []
    for match, user1, user2, user1_reaction, user2_reaction in db.session.execute(query).all():
        item = {
            'id': match.id,
            'state': match.state,
            'view_admin': match.view_admin,
            'created_at': _format_timestamp(match.created_at),
            'updated_at': _format_timestamp(match.updated_at),
        }
        for prefix, user, reaction in (('user1', user1, user1_reaction), ('user2', user2, user2_reaction)):
            item.update({
                f'{prefix}_id': user.id,
                f'{prefix}_name': user.name,
                f'{prefix}_phone': user.phone,
                f'{prefix}_photos': user.photos or [],
                f'{prefix}_birthdate': user.birthdate.isoformat() if user.birthdate else None,
                f'{prefix}_reaction': reaction,
            })
        items.append(item)

    total = db.session.execute(count_query).scalar_one()
    return {'items': items, 'page': page, 'limit': limit, 'total': total}


def list_available_users(user_id: int, limit: int = 5, offset: int = 0) -> List[Dict]:
    """
    Active USER profiles the requester has not reacted to yet, by id ascending.
    Users who reacted to the requester without a reply stay visible.
    """
    if db.session.get(User, user_id) is None:
        raise NotFound("User not found")

    already_reacted = select(Like.receiver_id).where(Like.sender_id == user_id)
    query = (
        select(User)
        .where(
            User.id != user_id,
            User.state.is_(True),
            User.type == 'USER',
            User.id.not_in(already_reacted),
        )
        .order_by(User.id.asc())
        .limit(limit)
        .offset(offset)
    )
    return [user.to_public_dict() for user in db.session.execute(query).scalars()]
