import logging
from flask_restful import Resource
from flask import request
from sqlalchemy.exc import IntegrityError
from models import db, User
from models.users import USER_TYPES, is_phone_conflict
from utils.cache import CacheManager
from utils.errors import ApiError, ValidationError
from utils.response import success_response, error_response, api_error_response
from utils.security import normalize_phone, hash_password, verify_password, is_legacy_hash
from utils.validators import parse_date, parse_int, parse_json_object, parse_text, age_from_birthdate

logger = logging.getLogger(__name__)


class RegisterResource(Resource):
    """Phone/password registration"""

    def post(self):
        """
        Register a new user.
        The phone is stored in its normalized 10-digit form so numbers typed
        with country code or punctuation collide with existing accounts.
        """
        try:
            data = parse_json_object(request.get_json(silent=True))

            missing = [field for field in ('phone', 'password', 'name', 'gender') if not data.get(field)]
            if not data.get('birthdate') and data.get('age') in (None, ''):
                missing.append('birthdate')
            if missing:
                return error_response(
                    f"Missing required fields: {', '.join(missing)}", 400, {'missing': missing}
                )

            password = parse_text(data['password'], 'password', required=True)
            name = parse_text(data['name'], 'name', required=True)
            gender = parse_text(data['gender'], 'gender', required=True)
            description = parse_text(data.get('description'), 'description') or ''

            norm = normalize_phone(data['phone'])
            if not norm:
                return error_response("Invalid phone number", 400)

            user_type = str(data.get('type') or 'USER').upper()
            if user_type not in USER_TYPES:
                return error_response(f"Invalid type. Must be one of {', '.join(USER_TYPES)}", 400)

            birthdate = parse_date(data.get('birthdate'), 'birthdate')
            if birthdate is not None:
                age = age_from_birthdate(birthdate)
            else:
                age = parse_int(data.get('age'), 'age', minimum=0)

            if User.query.filter_by(phone=norm).first():
                logger.warning(f"Registration rejected, phone already registered: {norm}")
                return error_response("Phone already registered", 409)

            user = User(
                state=True,
                name=name,
                birthdate=birthdate,
                age=age,
                description=description,
                gender=gender,
                phone=norm,
                password_hash=hash_password(password),
                type=user_type,
                photos=[],
            )
            db.session.add(user)
            db.session.commit()

            logger.info(f"Registered user {user.id}")
            CacheManager.invalidate_available_users()

            return success_response(user.to_public_dict(), "User registered successfully", 201)

        except ApiError as e:
            return api_error_response(e)
        except IntegrityError as e:
            db.session.rollback()
            if is_phone_conflict(e):
                # Concurrent registration with the same phone
                return error_response("Phone already registered", 409)
            logger.error(f"Integrity error in register: {str(e)}")
            return error_response("Internal server error", 500)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error in register: {str(e)}")
            return error_response("Internal server error", 500)


class LoginResource(Resource):
    """Phone/password login"""

    def post(self):
        try:
            data = parse_json_object(request.get_json(silent=True))
            phone = data.get('phone')

            if not phone or not data.get('password'):
                raise ValidationError("phone and password required")
            password = parse_text(data['password'], 'password', required=True)

            user = User.query.filter_by(phone=normalize_phone(phone)).first()
            if not user:
                return error_response("User not found", 404)

            if not verify_password(user.password_hash, password):
                logger.warning(f"Wrong password for user {user.id}")
                return error_response("Incorrect password", 401)

            if is_legacy_hash(user.password_hash):
                user.password_hash = hash_password(password)
                db.session.commit()
                logger.info(f"Upgraded legacy password hash for user {user.id}")

            return success_response(user.to_public_dict(), "Login successful")

        except ApiError as e:
            return api_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error in login: {str(e)}")
            return error_response("Internal server error", 500)
