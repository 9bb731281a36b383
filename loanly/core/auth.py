import datetime
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import Optional
from itsdangerous import URLSafeTimedSerializer, BadSignature
from loanly.configs import SEED, TOKEN_TTL, PASSWORD_ROUNDS
from loanly.core.models import Role

logger = logging.getLogger(__name__)

SERIALIZER = None  # Will be initialized lazily

PASSWORD_SCHEME = "pbkdf2_sha256"


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of a lending operation."""
    patron_id: int
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def _get_serializer():
    """Get or initialize the SERIALIZER lazily."""
    global SERIALIZER
    if SERIALIZER is None:
        SERIALIZER = URLSafeTimedSerializer(SEED, salt="auth-token")
    return SERIALIZER


def create_token(patron_id: int, role: Role = Role.USER) -> str:
    """Returns a signed bearer token for the patron."""
    return _get_serializer().dumps({"patron_id": patron_id, "role": role.value})


def issue_token(patron_id: int, role: Role = Role.USER) -> dict:
    """Token plus the moment it stops being accepted."""
    expiry = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(seconds=TOKEN_TTL)
    return {"token": create_token(patron_id, role), "expiry": expiry}


def verify_token(token: Optional[str]) -> Optional[Principal]:
    """Retrieves the principal from a signed token, None if invalid or expired."""
    if not token:
        return None
    try:
        data = _get_serializer().loads(token, max_age=TOKEN_TTL)
    except BadSignature:
        return None
    try:
        return Principal(patron_id=int(data["patron_id"]), role=Role(data["role"]))
    except (KeyError, TypeError, ValueError):
        logger.warning("Rejected malformed token payload")
        return None


def hash_password(password: str, rounds: int = PASSWORD_ROUNDS) -> str:
    """Salted PBKDF2 digest stored as scheme$rounds$salt$hex."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), rounds)
    return f"{PASSWORD_SCHEME}${rounds}${salt}${digest.hex()}"


def check_password(password: str, stored: Optional[str]) -> bool:
    if not stored:
        return False
    try:
        scheme, rounds, salt, expected = stored.split("$")
        rounds = int(rounds)
    except ValueError:
        logger.warning("Unreadable password hash")
        return False
    if scheme != PASSWORD_SCHEME:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), rounds)
    return hmac.compare_digest(digest.hex(), expected)
