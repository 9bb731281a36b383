import logging
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from loanly.core.auth import hash_password, check_password
from loanly.core.models import Patron, Role
from loanly.core.exceptions import (
    PatronNotFoundError,
    DuplicatePatronError,
    AuthenticationError,
)

logger = logging.getLogger(__name__)


class Patrons:

    @classmethod
    def add(cls, db, name: str, email: str, role: Role = Role.USER,
            password: Optional[str] = None) -> Patron:
        patron = Patron(
            name=name,
            email=email.strip().lower(),
            role=role,
            password_hash=hash_password(password) if password else None,
        )
        db.add(patron)
        db.flush()
        return patron

    @classmethod
    def find(cls, db, patron_id: int) -> Patron:
        if patron := db.get(Patron, patron_id):
            return patron
        raise PatronNotFoundError(f"Patron with id = {patron_id} not found")

    @classmethod
    def find_by_email(cls, db, email: str):
        return db.execute(
            select(Patron).where(Patron.email == email.strip().lower())
        ).scalar_one_or_none()

    @classmethod
    def signup(cls, db, name: str, email: str, password: str) -> Patron:
        """Registers a new borrower. Self-service accounts are always USER."""
        if cls.find_by_email(db, email):
            raise DuplicatePatronError(f"Patron with email {email} already exists")
        try:
            patron = cls.add(db, name, email, Role.USER, password=password)
        except IntegrityError:
            # Lost a race with a concurrent signup for the same email
            raise DuplicatePatronError(f"Patron with email {email} already exists") from None
        logger.info("Patron %s signed up", patron.id)
        return patron

    @classmethod
    def authenticate(cls, db, email: str, password: str) -> Patron:
        patron = cls.find_by_email(db, email)
        if patron is None or not check_password(password, patron.password_hash):
            raise AuthenticationError("Invalid credentials")
        return patron

    @classmethod
    def ensure_admin(cls, db, name: str, email: str, password: Optional[str] = None) -> Patron:
        """Creates the bootstrap administrator unless the email is taken."""
        if existing := cls.find_by_email(db, email):
            logger.info("Admin patron %s already exists", email)
            return existing
        admin = cls.add(db, name, email, role=Role.ADMIN, password=password)
        logger.info("Created admin patron %s", email)
        return admin
