from sqlalchemy.orm import Session

from database import commit
from errors import NotFoundError
from models import UserProfile


def get_profile(db: Session, username: str) -> UserProfile:
    profile = db.query(UserProfile).filter(UserProfile.username == username).first()
    if not profile:
        raise NotFoundError("Profile not found")
    return profile


def save_profile(db: Session, username: str, data: dict) -> UserProfile:
    """Create the shop profile on first save, update it afterwards."""
    profile = db.query(UserProfile).filter(UserProfile.username == username).first()
    if profile is None:
        profile = UserProfile(username=username)
        db.add(profile)
    for key in ("shop_name", "shop_logo"):
        if data.get(key) is not None:
            setattr(profile, key, data[key])
    commit(db, f"[profiles.py][save_profile][{username}]", "Could not save profile")
    db.refresh(profile)
    return profile
