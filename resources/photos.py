import logging
from flask_restful import Resource
from flask import request
from werkzeug.exceptions import RequestEntityTooLarge
from utils.errors import ApiError
from utils.photos import upload_photo, delete_photo
from utils.response import success_response, error_response, api_error_response
from utils.validators import parse_json_object

logger = logging.getLogger(__name__)


class UserPhotoUploadResource(Resource):
    """Upload a profile photo (multipart field 'photo')"""

    def post(self, user_id):
        try:
            file_storage = request.files.get('photo')
            photo_ref, photos, user = upload_photo(user_id, file_storage)

            return success_response(
                {'photo': photo_ref, 'photos': photos, 'type': user.type},
                "Photo added successfully"
            )

        except RequestEntityTooLarge:
            logger.warning(f"Oversized photo upload rejected for user {user_id}")
            return error_response("Photo exceeds the maximum upload size", 413)
        except ApiError as e:
            return api_error_response(e)
        except Exception as e:
            logger.error(f"Error uploading photo for user {user_id}: {str(e)}")
            return error_response("Failed to upload photo", 500)


class UserPhotoDeleteResource(Resource):
    """Remove a profile photo by its returned path or URL"""

    def delete(self, user_id):
        try:
            data = parse_json_object(request.get_json(silent=True))
            photos, user = delete_photo(user_id, data.get('photo'))

            return success_response(
                {'photos': photos, 'type': user.type},
                "Photo deleted successfully"
            )

        except ApiError as e:
            return api_error_response(e)
        except Exception as e:
            logger.error(f"Error deleting photo for user {user_id}: {str(e)}")
            return error_response("Failed to delete photo", 500)
