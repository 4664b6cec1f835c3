from .evaluators import is_authorized, is_expired, is_limit_reached, is_verified
from .policies import AccessMode, ClientInfo, Credentials, Requester

__all__ = [
    "AccessMode",
    "ClientInfo",
    "Credentials",
    "Requester",
    "is_authorized",
    "is_expired",
    "is_limit_reached",
    "is_verified",
]
