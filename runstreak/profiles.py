from sqlalchemy.orm import Session

from .models import Profile

def get_profile(db: Session, user_id: str) -> Profile:
    """Profile row for the user; created with an empty RP balance if missing."""
    profile = db.get(Profile, user_id)
    if not profile:
        profile = Profile(id=user_id, rp_balance=0)
        db.add(profile)
        db.flush()
    return profile
