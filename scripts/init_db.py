import sys
from contextlib import contextmanager
from pathlib import Path
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.devicemgt.models import Permission, Role, User
from app.devicemgt.modules.device_types.utility import registry_from_config
from app.devicemgt.modules.devices.service import ensure_device_type

PERMISSIONS = (
    ("devices.view", "Devices: view own"),
    ("devices.list_all", "Devices: view all"),
    ("devices.add", "Devices: enroll"),
    ("devices.remove", "Devices: remove"),
    ("groups.view", "Groups: view"),
    ("groups.create", "Groups: create"),
    ("groups.assign", "Groups: manage devices"),
)

# Permissions granted to the default "user" role; "admin" gets everything.
USER_ROLE_PERMISSIONS = ("devices.view", "devices.add", "devices.remove", "groups.view")


@contextmanager
def _session_scope(database_url: str):
    engine = create_engine(database_url, future=True, pool_pre_ping=True)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin user and the built-in device types in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@devicemgt.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///devicemgt.db").strip()

    with _session_scope(db_url) as s:
        def ensure_perm(key: str, name: str) -> Permission:
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            return p

        def ensure_role(key: str, name: str) -> Role:
            r = s.query(Role).filter(Role.key == key).one_or_none()
            if not r:
                r = Role(key=key, name=name)
                s.add(r)
            return r

        perms = {key: ensure_perm(key, name) for key, name in PERMISSIONS}

        role_admin = ensure_role("admin", "Administrator")
        for p in perms.values():
            if p not in role_admin.permissions:
                role_admin.permissions.append(p)

        role_user = ensure_role("user", "Device owner")
        for key in USER_ROLE_PERMISSIONS:
            if perms[key] not in role_user.permissions:
                role_user.permissions.append(perms[key])

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(email=admin_email, password_hash=generate_password_hash(admin_password), is_active=True)
            s.add(user)
        if role_admin not in user.roles:
            user.roles.append(role_admin)

        # Built-in types plus any extra ones from DEVICE_TYPE_CONFIG_DIR
        registry = registry_from_config({"DEVICE_TYPE_CONFIG_DIR": os.environ.get("DEVICE_TYPE_CONFIG_DIR")})
        for type_name in registry.known_types():
            ensure_device_type(s, type_name)

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
