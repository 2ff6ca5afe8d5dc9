# profile_manager.py
import logging
import uuid

from pydantic import ValidationError as PydanticValidationError

from errors import NotFoundError, ValidationError
from schemas import PortfolioItemInput, Profile, ProfileUpdate

logger = logging.getLogger(__name__)

PROFILES = "profiles"

# starting point for brand new users
DEFAULT_PROFILE = {
    "profilePicture": "",
    "shortBio": (
        "Creative developer with a passion for building beautiful and "
        "functional web applications. I'm skilled in React and looking to "
        "trade my expertise for some help with illustration and UI design."
    ),
    "skillsOffered": ["React", "Next.js", "TypeScript"],
    "skillsDesired": ["Illustration", "UI Design", "Figma"],
    "portfolio": [],
}


def first_error(exc: PydanticValidationError) -> str:
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ()))
    return f"{field}: {err.get('msg')}" if field else err.get("msg", "Invalid input")


def _to_profile(uid: str, data: dict) -> dict:
    return Profile(uid=uid, **{k: v for k, v in data.items() if k != "uid"}).model_dump()


def get_profile(db, uid: str) -> dict:
    snap = db.collection(PROFILES).document(uid).get()
    if not snap.exists:
        raise NotFoundError(f"Profile {uid} not found")
    return _to_profile(snap.id, snap.to_dict() or {})


def get_or_create_profile(db, uid: str, display_name: str = "") -> dict:
    """Fetches profiles/{uid}, creating it from DEFAULT_PROFILE on first visit."""
    ref = db.collection(PROFILES).document(uid)
    snap = ref.get()
    if snap.exists:
        return _to_profile(uid, snap.to_dict() or {})

    profile = {
        "uid": uid,
        "name": (display_name or "").strip() or "New User",
        **DEFAULT_PROFILE,
    }
    ref.set(profile)
    logger.info("Created default profile for %s", uid)
    return _to_profile(uid, profile)


def update_profile(db, uid: str, updates: dict) -> dict:
    try:
        clean = ProfileUpdate.model_validate(updates or {})
    except PydanticValidationError as e:
        raise ValidationError(first_error(e))

    current = get_profile(db, uid)
    changes = clean.model_dump(exclude_none=True)
    db.collection(PROFILES).document(uid).set(changes, merge=True)
    current.update(changes)
    return current


def list_profiles(db) -> list:
    """Every profile in the system, each carrying its uid."""
    users = []
    for snap in db.collection(PROFILES).stream():
        try:
            users.append(_to_profile(snap.id, snap.to_dict() or {}))
        except PydanticValidationError:
            logger.warning("Skipping malformed profile %s", snap.id)
    return users


# ---------------- portfolio ----------------
def _save_portfolio(db, uid: str, portfolio: list):
    db.collection(PROFILES).document(uid).set({"portfolio": portfolio}, merge=True)


def _validate_item(data: dict) -> dict:
    try:
        return PortfolioItemInput.model_validate(data or {}).model_dump()
    except PydanticValidationError as e:
        raise ValidationError(first_error(e))


def add_portfolio_item(db, uid: str, data: dict) -> dict:
    fields = _validate_item(data)
    profile = get_profile(db, uid)
    item = {"id": uuid.uuid4().hex[:16], "imageUrl": None, **fields}
    portfolio = profile["portfolio"] + [item]
    _save_portfolio(db, uid, portfolio)
    return item


def update_portfolio_item(db, uid: str, item_id: str, data: dict) -> dict:
    fields = _validate_item(data)
    profile = get_profile(db, uid)
    portfolio = profile["portfolio"]
    for i, item in enumerate(portfolio):
        if item["id"] == item_id:
            portfolio[i] = {**item, **fields}
            _save_portfolio(db, uid, portfolio)
            return portfolio[i]
    raise NotFoundError(f"Portfolio item {item_id} not found")


def delete_portfolio_item(db, uid: str, item_id: str):
    profile = get_profile(db, uid)
    portfolio = [p for p in profile["portfolio"] if p["id"] != item_id]
    if len(portfolio) == len(profile["portfolio"]):
        raise NotFoundError(f"Portfolio item {item_id} not found")
    _save_portfolio(db, uid, portfolio)


def get_portfolio_item(db, uid: str, item_id: str) -> dict:
    for item in get_profile(db, uid)["portfolio"]:
        if item["id"] == item_id:
            return item
    raise NotFoundError(f"Portfolio item {item_id} not found")


def set_portfolio_image(db, uid: str, item_id: str, image_url: str) -> dict:
    profile = get_profile(db, uid)
    portfolio = profile["portfolio"]
    for item in portfolio:
        if item["id"] == item_id:
            item["imageUrl"] = image_url
            _save_portfolio(db, uid, portfolio)
            return item
    raise NotFoundError(f"Portfolio item {item_id} not found")
