import logging
from flask_restful import Resource
from flask import request
from models import db, RouletteOption
from utils.errors import ApiError
from utils.response import success_response, error_response, paginated_response, api_error_response
from utils.validators import parse_int, parse_optional_bool, parse_json_object, parse_text

logger = logging.getLogger(__name__)


def _read_state(data, default=True):
    state = parse_optional_bool(data.get('state'), 'state')
    return default if state is None else state


class RouletteListResource(Resource):
    """Create and list roulette options"""

    def post(self):
        try:
            data = parse_json_object(request.get_json(silent=True))
            if not data.get('name'):
                return error_response("name is required", 400)

            option = RouletteOption(
                name=parse_text(data['name'], 'name', required=True),
                description=parse_text(data.get('description'), 'description'),
                state=_read_state(data),
            )
            db.session.add(option)
            db.session.commit()
            logger.info(f"Created roulette option {option.id}")

            return success_response(option.to_dict(), "Option created successfully", 201)

        except ApiError as e:
            return api_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error creating roulette option: {str(e)}")
            return error_response("Failed to create option", 500)

    def get(self):
        """Query params: page (zero-based, default 0), limit (default 10)"""
        try:
            page = parse_int(request.args.get('page'), 'page', default=0, minimum=0)
            limit = parse_int(request.args.get('limit'), 'limit', default=10, minimum=1)

            query = RouletteOption.query
            total = query.count()
            options = query.order_by(RouletteOption.created_at.desc(), RouletteOption.id.desc())\
                .limit(limit)\
                .offset(page * limit)\
                .all()

            return paginated_response(
                [option.to_dict() for option in options],
                total=total,
                page=page,
                limit=limit,
                message="Options retrieved successfully"
            )

        except ApiError as e:
            return api_error_response(e)
        except Exception as e:
            logger.error(f"Error fetching roulette options: {str(e)}")
            return error_response("Failed to fetch options", 500)


class RouletteResource(Resource):
    """Read, replace and delete a roulette option"""

    def get(self, option_id):
        try:
            option = db.session.get(RouletteOption, option_id)
            if not option:
                return error_response("Option not found", 404)
            return success_response(option.to_dict(), "Option retrieved successfully")

        except Exception as e:
            logger.error(f"Error fetching roulette option {option_id}: {str(e)}")
            return error_response("Failed to fetch option", 500)

    def put(self, option_id):
        try:
            data = parse_json_object(request.get_json(silent=True))
            option = db.session.get(RouletteOption, option_id)
            if not option:
                return error_response("Option not found", 404)

            if not data.get('name'):
                return error_response("name is required", 400)

            option.name = parse_text(data['name'], 'name', required=True)
            option.description = parse_text(data.get('description'), 'description')
            option.state = _read_state(data)
            db.session.commit()
            logger.info(f"Updated roulette option {option_id}")

            return success_response(option.to_dict(), "Option updated successfully")

        except ApiError as e:
            db.session.rollback()
            return api_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating roulette option {option_id}: {str(e)}")
            return error_response("Failed to update option", 500)

    def delete(self, option_id):
        try:
            option = db.session.get(RouletteOption, option_id)
            if not option:
                return error_response("Option not found", 404)

            data = option.to_dict()
            db.session.delete(option)
            db.session.commit()
            logger.info(f"Deleted roulette option {option_id}")

            return success_response(data, "Option deleted successfully")

        except Exception as e:
            db.session.rollback()
            logger.error(f"Error deleting roulette option {option_id}: {str(e)}")
            return error_response("Failed to delete option", 500)
