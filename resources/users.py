import logging
from flask_restful import Resource
from flask import request
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from models import db, User, Like, Match
from models.users import USER_TYPES, is_phone_conflict
from utils.response import success_response, error_response, api_error_response
from utils.errors import ApiError, ValidationError
from utils.cache import (
    CacheManager,
    CACHE_TTL_SHORT,
    CACHE_TTL_MEDIUM,
    build_available_users_cache_key,
    build_user_profile_cache_key,
)
from utils.matching import list_available_users
from utils.photos import delete_user_photos
from utils.security import normalize_phone, hash_password
from utils.validators import (
    parse_int,
    parse_date,
    parse_optional_bool,
    parse_json_object,
    parse_text,
    age_from_birthdate,
)

logger = logging.getLogger(__name__)


def apply_user_fields(user: User, data: dict):
    """Copy the profile fields present in data onto user (partial update)"""
    if 'name' in data:
        user.name = parse_text(data['name'], 'name', required=True)
    if 'gender' in data:
        user.gender = parse_text(data['gender'], 'gender')
    if 'description' in data:
        user.description = parse_text(data['description'], 'description') or ''

    if 'birthdate' in data:
        user.birthdate = parse_date(data['birthdate'], 'birthdate')
        if user.birthdate is not None:
            user.age = age_from_birthdate(user.birthdate)
    if 'age' in data and 'birthdate' not in data:
        user.age = parse_int(data['age'], 'age', minimum=0) if data['age'] not in (None, '') else None

    if data.get('type'):
        user_type = str(data['type']).upper()
        if user_type not in USER_TYPES:
            raise ValidationError(f"Invalid type. Must be one of {', '.join(USER_TYPES)}")
        user.type = user_type

    if 'state' in data:
        state = parse_optional_bool(data['state'], 'state')
        if state is None:
            raise ValidationError("state must be 'true' or 'false'")
        user.state = state

    if data.get('phone'):
        norm = normalize_phone(data['phone'])
        if not norm:
            raise ValidationError("Invalid phone number")
        user.phone = norm

    if data.get('password'):
        user.password_hash = hash_password(parse_text(data['password'], 'password'))


def phone_taken(phone: str, exclude_id=None) -> bool:
    query = User.query.filter(User.phone == phone)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return db.session.query(query.exists()).scalar()


class AvailableUsersResource(Resource):
    """Candidates a user has not reacted to yet"""

    def get(self):
        """
        Query params: userId (required), limit (default 5), offset (default 0).
        """
        try:
            user_id = parse_int(request.args.get('userId'), 'userId')
            limit = parse_int(request.args.get('limit'), 'limit', default=5, minimum=1)
            offset = parse_int(request.args.get('offset'), 'offset', default=0, minimum=0)

            cache_key = build_available_users_cache_key(user_id, limit, offset)
            cached_result = CacheManager.get(cache_key)
            if cached_result is not None:
                logger.info(f"Cache HIT for available users - user: {user_id}")
                return success_response(cached_result, "Available users retrieved (cached)")

            users = list_available_users(user_id, limit, offset)
            CacheManager.set(cache_key, users, ttl=CACHE_TTL_SHORT)

            return success_response(users, "Available users retrieved successfully")

        except ApiError as e:
            return api_error_response(e)
        except Exception as e:
            logger.error(f"Error fetching available users: {str(e)}")
            return error_response("Failed to fetch users", 500)


class UserListResource(Resource):
    """Admin creation of users"""

    def post(self):
        try:
            data = parse_json_object(request.get_json(silent=True))

            missing = [field for field in ('name', 'phone', 'password') if not data.get(field)]
            if missing:
                return error_response(
                    f"Missing required fields: {', '.join(missing)}", 400, {'missing': missing}
                )

            user = User(state=True, type='USER', photos=[], description='')
            apply_user_fields(user, data)

            if phone_taken(user.phone):
                return error_response("Phone already registered", 409)

            db.session.add(user)
            db.session.commit()
            logger.info(f"Created user {user.id} with type {user.type}")
            CacheManager.invalidate_available_users()

            return success_response(user.to_public_dict(), "User created successfully", 201)

        except ApiError as e:
            db.session.rollback()
            return api_error_response(e)
        except IntegrityError as e:
            db.session.rollback()
            if is_phone_conflict(e):
                return error_response("Phone already registered", 409)
            logger.error(f"Integrity error creating user: {str(e)}")
            return error_response("Failed to create user", 500)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error creating user: {str(e)}")
            return error_response("Failed to create user", 500)


class UserResource(Resource):
    """Read, update and delete a single user"""

    def get(self, user_id):
        try:
            cache_key = build_user_profile_cache_key(user_id)
            cached_result = CacheManager.get(cache_key)
            if cached_result is not None:
                return success_response(cached_result, "User retrieved successfully (cached)")

            user = db.session.get(User, user_id)
            if not user:
                logger.warning(f"User {user_id} not found")
                return error_response("User not found", 404)

            user_data = user.to_public_dict()
            CacheManager.set(cache_key, user_data, ttl=CACHE_TTL_MEDIUM)

            return success_response(user_data, "User retrieved successfully")

        except Exception as e:
            logger.error(f"Error fetching user {user_id}: {str(e)}")
            return error_response("Failed to fetch user", 500)

    def put(self, user_id):
        """Update the fields present in the body; absent fields are left as they are"""
        try:
            data = parse_json_object(request.get_json(silent=True))
            if not data:
                return error_response("No data provided", 400)

            user = db.session.get(User, user_id)
            if not user:
                return error_response("User not found", 404)

            apply_user_fields(user, data)

            if data.get('phone') and phone_taken(user.phone, exclude_id=user_id):
                db.session.rollback()
                return error_response("Phone already registered", 409)

            db.session.commit()
            logger.info(f"Updated user {user_id}")
            CacheManager.invalidate_user_cache(user_id)

            return success_response(user.to_public_dict(), "User updated successfully")

        except ApiError as e:
            db.session.rollback()
            return api_error_response(e)
        except IntegrityError as e:
            db.session.rollback()
            if is_phone_conflict(e):
                return error_response("Phone already registered", 409)
            logger.error(f"Integrity error updating user {user_id}: {str(e)}")
            return error_response("Failed to update user", 500)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating user {user_id}: {str(e)}")
            return error_response("Failed to update user", 500)

    def delete(self, user_id):
        """Delete the user with their reactions and matches, then their photo files"""
        try:
            user = db.session.get(User, user_id)
            if not user:
                return error_response("User not found", 404)

            photos = list(user.photos or [])
            user_type = user.type

            Like.query.filter(
                or_(Like.sender_id == user_id, Like.receiver_id == user_id)
            ).delete(synchronize_session=False)
            Match.query.filter(
                or_(Match.user1_id == user_id, Match.user2_id == user_id)
            ).delete(synchronize_session=False)
            db.session.delete(user)
            db.session.commit()

            delete_user_photos(user_id, photos)
            CacheManager.invalidate_user_cache(user_id)
            logger.info(f"Deleted user {user_id} and {len(photos)} photos")

            return success_response({'id': user_id, 'type': user_type}, "User deleted successfully")

        except Exception as e:
            db.session.rollback()
            logger.error(f"Error deleting user {user_id}: {str(e)}")
            return error_response("Failed to delete user", 500)
