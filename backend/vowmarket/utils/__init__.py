from .errors import error_response, domain_error_response
from .auth import normalize_email
