"""Canonical logging field names shared by Trail components.

Structured log lines and bound context use these keys so version writes and
history reads can be correlated by the same identifiers.
"""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EXCEPTION = "exception"

# Service-level fields.
SERVICE = "service"
ENVIRONMENT = "environment"

# Version capture fields.
OPERATION = "operation"
EVENT = "event"
ITEM_TYPE = "item_type"
ITEM_ID = "item_id"
VERSION_ID = "version_id"
ORIGIN = "origin"
SCOPE = "scope"
ERROR_CODE = "error_code"
RESULT_COUNT = "result_count"
