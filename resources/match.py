import logging
from flask_restful import Resource
from flask import request
from models import db
from utils.errors import ApiError, ValidationError
from utils.matching import react, list_matches, mark_match_viewed
from utils.response import success_response, error_response, paginated_response, api_error_response
from utils.validators import parse_int, parse_optional_bool, parse_json_object

logger = logging.getLogger(__name__)


class MatchListResource(Resource):
    """Admin listing of matches"""

    def get(self):
        """
        Query params: page (zero-based, default 0), limit (default 4),
        viewed ('true' | 'false', omitted for all).
        """
        try:
            page = parse_int(request.args.get('page'), 'page', default=0, minimum=0)
            limit = parse_int(request.args.get('limit'), 'limit', default=4, minimum=1)
            viewed = parse_optional_bool(request.args.get('viewed'), 'viewed')

            result = list_matches(page=page, limit=limit, viewed=viewed)

            return paginated_response(
                result['items'],
                total=result['total'],
                page=result['page'],
                limit=result['limit'],
                message="Matches retrieved successfully"
            )

        except ApiError as e:
            return api_error_response(e)
        except Exception as e:
            logger.error(f"Error fetching matches: {str(e)}")
            return error_response("Failed to fetch matches", 500)


class ReactResource(Resource):
    """Record a reaction; creates a match when it is reciprocated"""

    def post(self):
        """
        Body: senderId, receiverId, reactionType (LIKE | LOVE | DISLIKE).
        match is null unless this call created it.
        """
        try:
            data = parse_json_object(request.get_json(silent=True))
            if not data:
                return error_response("No data provided", 400)

            missing = [field for field in ('senderId', 'receiverId', 'reactionType') if not data.get(field)]
            if missing:
                raise ValidationError(f"Missing required fields: {', '.join(missing)}", {'missing': missing})

            sender_id = parse_int(data.get('senderId'), 'senderId', minimum=1)
            receiver_id = parse_int(data.get('receiverId'), 'receiverId', minimum=1)

            reaction, match = react(sender_id, receiver_id, data.get('reactionType'))

            return success_response(
                {
                    'reaction': reaction.to_dict(),
                    'match': match.to_dict() if match else None,
                    'is_match': match is not None,
                },
                "Match created!" if match else "Reaction recorded"
            )

        except ApiError as e:
            return api_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error processing reaction: {str(e)}")
            return error_response("Failed to process reaction", 500)


class MatchViewedResource(Resource):
    """Toggle the viewed-by-admin flag of a match"""

    def put(self, match_id):
        try:
            data = parse_json_object(request.get_json(silent=True))
            viewed = parse_optional_bool(data.get('viewed'), 'viewed')
            match = mark_match_viewed(match_id, True if viewed is None else viewed)

            return success_response(match.to_dict(), "Match updated successfully")

        except ApiError as e:
            return api_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating match {match_id}: {str(e)}")
            return error_response("Failed to update match", 500)
