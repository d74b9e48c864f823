# enums.py

from enum import Enum


class StorageKind(str, Enum):
    SESSION = "session"
    COOKIE = "cookie"
    REDIS = "redis"


class RejectReason(str, Enum):
    MISSING_TOKEN = "missing_token"
    TOKEN_MISMATCH = "token_mismatch"
