"""Application-wide constants.

This module defines constants used throughout the application
to avoid magic numbers and ensure consistency.
"""

# String field lengths
MAX_EMAIL_LENGTH = 255
MAX_NAME_LENGTH = 255
MAX_PHONE_LENGTH = 50
MAX_ROLE_NAME_LENGTH = 100
MAX_SLUG_FIELD_LENGTH = 100
MAX_PERMISSION_RESOURCE_LENGTH = 100
MAX_PERMISSION_ACTION_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 255
MAX_API_KEY_LENGTH = 255

# Password requirements
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128
DEFAULT_BCRYPT_ROUNDS = 12
MIN_BCRYPT_ROUNDS = 4
MAX_BCRYPT_ROUNDS = 16

# Registration field bounds
MIN_DISPLAY_NAME_LENGTH = 2
MAX_DISPLAY_NAME_LENGTH = 100
MIN_PHONE_INPUT_LENGTH = 10
MAX_PHONE_INPUT_LENGTH = 20

# Pagination defaults
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# API keys
API_KEY_RANDOM_LENGTH = 32
MIN_API_KEY_NAME_LENGTH = 3
MAX_API_KEY_NAME_LENGTH = 100
MIN_API_KEY_EXPIRY_DAYS = 1
MAX_API_KEY_EXPIRY_DAYS = 365

# Secret key requirements
MIN_SECRET_KEY_LENGTH = 32
DEFAULT_INSECURE_ACCESS_SECRET = "change-me-access-secret"
DEFAULT_INSECURE_REFRESH_SECRET = "change-me-refresh-secret"

# Backing store
DEFAULT_DATABASE_TIMEOUT_SECONDS = 5.0
