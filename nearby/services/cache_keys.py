"""Cache key namespaces shared by the services"""

ACCESS_VALIDATION_PREFIX = "user:jwt-validation:"
REFRESH_VALIDATION_PREFIX = "user:refresh-token-validation:"
SEARCH_SCOPE = "services:search"
POPULAR_SCOPE = "services:popular"
SERVICE_TYPES_PREFIX = "service-types:"

# Every write to a service clears these
SERVICE_LISTING_PREFIXES = (f"{SEARCH_SCOPE}:", f"{POPULAR_SCOPE}:")


def access_validation_key(user_id: str) -> str:
    return f"{ACCESS_VALIDATION_PREFIX}{user_id}"


def refresh_validation_key(token_id: str) -> str:
    return f"{REFRESH_VALIDATION_PREFIX}{token_id}"


def service_type_key(type_id: str) -> str:
    return f"{SERVICE_TYPES_PREFIX}{type_id}"


SERVICE_TYPES_ALL_KEY = service_type_key("all")
