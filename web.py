# web.py
import json
import logging
import queue
from functools import wraps

from flask import Flask, Response, g, jsonify, request
from pydantic import ValidationError as PydanticValidationError

import ai_flows
import config
import matcher
import profile_manager
import request_manager
from errors import AuthError, BarttleError, GenerationError, ValidationError
from firebase_client import get_db, verify_token
from gemini_client import GeminiClient
from schemas import MatchedUser, SwapRequestInput

logger = logging.getLogger(__name__)

app = Flask(__name__)

# request status each action moves a swap request to
ACTIONS = {"accept": "accepted", "decline": "declined", "cancel": "cancelled"}

SSE_KEEPALIVE_SECONDS = 25

_gemini = None


def get_gemini() -> GeminiClient:
    global _gemini
    if _gemini is None:
        _gemini = GeminiClient()
    return _gemini


# ---------------- auth & errors ----------------
def _header_token():
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def login_required(fn=None, *, query_token=False):
    """
    Requires a Firebase ID token as "Authorization: Bearer <token>".
    With query_token=True a ?token= parameter is accepted as well, for
    EventSource clients which cannot set headers.
    """
    if fn is None:
        return lambda f: login_required(f, query_token=query_token)

    @wraps(fn)
    def wrapper(*args, **kwargs):
        token = _header_token()
        if token is None and query_token:
            token = request.args.get("token", "").strip() or None
        if token is None:
            raise AuthError("Authorization header missing or malformed")
        claims = verify_token(token)
        g.uid = claims["uid"]
        g.user_name = claims.get("name") or ""
        return fn(*args, **kwargs)
    return wrapper


@app.errorhandler(BarttleError)
def handle_domain_error(e):
    return jsonify(error=str(e)), e.status_code


def _body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


# ---------------- health ----------------
@app.route("/")
def index():
    return "Barttle API is running!"


@app.route("/health")
def health():
    return jsonify(status="ok")


# ---------------- profile ----------------
@app.get("/api/profile")
@login_required
def read_profile():
    return jsonify(profile_manager.get_or_create_profile(get_db(), g.uid, g.user_name))


@app.put("/api/profile")
@login_required
def write_profile():
    db = get_db()
    profile_manager.get_or_create_profile(db, g.uid, g.user_name)
    return jsonify(profile_manager.update_profile(db, g.uid, _body()))


@app.post("/api/profile/bio")
@login_required
def generate_bio():
    """Bio from the (possibly unsaved) form values, falling back to the stored profile."""
    profile = profile_manager.get_or_create_profile(get_db(), g.uid, g.user_name)
    body = _body()
    payload = {
        "name": body.get("name") or profile["name"],
        "shortBio": body.get("shortBio", profile["shortBio"]) or None,
        "skillsOffered": body.get("skillsOffered", profile["skillsOffered"]) or [],
        "skillsDesired": body.get("skillsDesired", profile["skillsDesired"]) or [],
    }
    return jsonify(ai_flows.handle_generate_bio(payload, get_gemini()))


@app.post("/api/profile/portfolio")
@login_required
def add_portfolio_item():
    db = get_db()
    profile_manager.get_or_create_profile(db, g.uid, g.user_name)
    return jsonify(profile_manager.add_portfolio_item(db, g.uid, _body())), 201


@app.put("/api/profile/portfolio/<item_id>")
@login_required
def edit_portfolio_item(item_id):
    return jsonify(profile_manager.update_portfolio_item(get_db(), g.uid, item_id, _body()))


@app.delete("/api/profile/portfolio/<item_id>")
@login_required
def remove_portfolio_item(item_id):
    profile_manager.delete_portfolio_item(get_db(), g.uid, item_id)
    return "", 204


@app.post("/api/profile/portfolio/<item_id>/image")
@login_required
def portfolio_image(item_id):
    db = get_db()
    item = profile_manager.get_portfolio_item(db, g.uid, item_id)
    hint = _body().get("aiHint") or "modern, clean"
    result = ai_flows.generate_portfolio_image(
        {"title": item["title"], "description": item["description"], "aiHint": hint},
        get_gemini(),
    )
    return jsonify(profile_manager.set_portfolio_image(db, g.uid, item_id, result.imageUrl))


# ---------------- matches ----------------
def _local_match(profile: dict) -> dict:
    return MatchedUser(
        uid=profile["uid"],
        name=profile["name"],
        bio=profile.get("shortBio", ""),
        skillsOffered=profile.get("skillsOffered", []),
        skillsDesired=profile.get("skillsDesired", []),
        profilePicture=profile.get("profilePicture") or None,
        avatar=profile.get("profilePicture") or config.AVATAR_FALLBACK_URL,
    ).model_dump()


@app.get("/api/matches")
@login_required
def skill_matches():
    db = get_db()
    me = profile_manager.get_or_create_profile(db, g.uid, g.user_name)
    strategy = request.args.get("strategy", config.MATCH_STRATEGY).lower()
    if strategy not in ("llm", "local"):
        raise ValidationError(f"Unknown match strategy: {strategy}")

    if strategy == "llm":
        try:
            result = ai_flows.find_skill_matches(
                {
                    "skillsOffered": me["skillsOffered"],
                    "skillsDesired": me["skillsDesired"],
                    "currentUserName": me["name"],
                    "currentUserUid": me["uid"],
                },
                lambda: profile_manager.list_profiles(db),
                client=get_gemini(),
            )
            return jsonify(strategy="llm", **result.model_dump())
        except GenerationError:
            logger.exception("Model matching failed for %s, using local ranking", g.uid)

    ranked = matcher.rank_candidates(me, profile_manager.list_profiles(db), config.MATCH_LIMIT)
    return jsonify(strategy="local", matches=[_local_match(p) for p in ranked])


@app.get("/api/users/<uid>/swappable")
@login_required
def swappable(uid):
    db = get_db()
    me = profile_manager.get_or_create_profile(db, g.uid, g.user_name)
    target = profile_manager.get_profile(db, uid)
    can_offer, can_receive = matcher.swappable_skills(me, target)
    return jsonify(
        target={"uid": target["uid"], "name": target["name"]},
        canOffer=can_offer,
        canReceive=can_receive,
    )


# ---------------- swap requests ----------------
def _subset(chosen: list, allowed: list) -> bool:
    allowed = {s.strip().lower() for s in allowed}
    return all(s.strip().lower() in allowed for s in chosen)


@app.get("/api/requests")
@login_required
def list_requests():
    lists = request_manager.list_requests(get_db(), g.uid)
    return jsonify({k: [request_manager.serialize(r) for r in v] for k, v in lists.items()})


@app.post("/api/requests")
@login_required
def create_request():
    try:
        data = SwapRequestInput.model_validate(_body())
    except PydanticValidationError as e:
        raise ValidationError(profile_manager.first_error(e))

    db = get_db()
    me = profile_manager.get_or_create_profile(db, g.uid, g.user_name)
    target = profile_manager.get_profile(db, data.targetUid)
    can_offer, can_receive = matcher.swappable_skills(me, target)
    if not _subset(data.skillsOffered, can_offer) or not _subset(data.skillsDesired, can_receive):
        raise ValidationError("Selected skills are not part of this swap.")

    req = request_manager.create_request(db, me, target, data.skillsOffered, data.skillsDesired)
    return jsonify(request_manager.serialize(req)), 201


@app.post("/api/requests/<request_id>/<action>")
@login_required
def change_request(request_id, action):
    if action not in ACTIONS:
        raise ValidationError(f"Unknown action: {action}")
    req = request_manager.update_request_status(get_db(), request_id, ACTIONS[action], g.uid)
    return jsonify(request_manager.serialize(req))


def _sse(view: dict) -> str:
    return f"data: {json.dumps(view)}\n\n"


@app.get("/api/requests/stream")
@login_required(query_token=True)
def request_stream():
    """Server-sent events carrying the merged incoming/outgoing view."""
    updates = queue.Queue()
    feed = request_manager.RequestFeed(get_db(), g.uid)
    feed.add_listener(updates.put)
    feed.start()

    def events():
        try:
            yield _sse(feed.snapshot())
            while True:
                try:
                    view = updates.get(timeout=SSE_KEEPALIVE_SECONDS)
                except queue.Empty:
                    yield ": keep-alive\n\n"
                    continue
                yield _sse(view)
        finally:
            feed.close()

    return Response(events(), mimetype="text/event-stream",
                    headers={"Cache-Control": "no-cache"})


def start_web(host="0.0.0.0", port=5000):
    app.run(host=host, port=port, threaded=True)
