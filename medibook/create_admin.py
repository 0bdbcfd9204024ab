"""Create a back-office admin account.

Usage:
    python -m medibook.create_admin NAME EMAIL
"""
import getpass
import sys

from medibook.auth.identity import IdentityGateway, PasswordIdentityProvider
from medibook.core.errors import MedibookError
from medibook.database import Base, SessionLocal, engine
from medibook.models import account, admin, appointment, doctor, patient, user  # noqa: F401
from medibook.store import DocumentStore


def create_admin(name: str, email: str, password: str) -> str:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        gateway = IdentityGateway(PasswordIdentityProvider(db), DocumentStore(db))
        created, token = gateway.register(name, email, password, 'admin')
        gateway.logout(token)
        return created.uid
    finally:
        db.close()


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 2:
        print(__doc__.strip(), file=sys.stderr)
        sys.exit(2)

    name, email = args
    password = getpass.getpass('Password: ')
    try:
        uid = create_admin(name, email, password)
    except MedibookError as exc:
        print(f'Could not create admin: {exc.message}', file=sys.stderr)
        sys.exit(1)
    print(uid)


if __name__ == "__main__":
    main()
