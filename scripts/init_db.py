import os
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from scripts._db_utils import script_session  # noqa: E402
from app.musaib.constants import UserRole  # noqa: E402
from app.musaib.models import Profile  # noqa: E402
from app.musaib.seed import seed_roles  # noqa: E402


def seed_only(*, database_url: str | None = None, create_tables: bool = False) -> None:
    """
    Seed roles/permissions and the first administrator profile in an idempotent way.
    Does NOT modify an existing administrator profile.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@musaib.local").strip().lower()
    admin_name = (os.environ.get("ADMIN_NAME") or "Administrateur MuSAIB").strip()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///musaib.db").strip()

    with script_session(db_url, create_tables=create_tables) as s:
        seed_roles(s)
        admin = s.query(Profile).filter(Profile.email == admin_email).one_or_none()
        if not admin:
            s.add(Profile(email=admin_email, full_name=admin_name, role=UserRole.ADMINISTRATOR.value, is_active=True))
            print(f"Created administrator profile {admin_email}", flush=True)
        else:
            print(f"Administrator profile {admin_email} already exists; left unchanged", flush=True)


def main() -> None:
    seed_only(create_tables="--create-tables" in sys.argv[1:])


if __name__ == "__main__":
    main()
