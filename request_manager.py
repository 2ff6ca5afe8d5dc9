# request_manager.py
import logging
import threading
from datetime import datetime, timezone

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from pydantic import ValidationError as PydanticValidationError

from errors import InvalidTransition, NotFoundError, PermissionDenied, ValidationError
from schemas import SwapRequest, SwapRequestStatus

logger = logging.getLogger(__name__)

REQUESTS = "requests"

# status -> which party may move a pending request there
TRANSITIONS = {
    SwapRequestStatus.accepted: "requestedId",
    SwapRequestStatus.declined: "requestedId",
    SwapRequestStatus.cancelled: "requesterId",
}


def _now_utc():
    return datetime.now(timezone.utc)


def _to_request(request_id: str, data: dict) -> SwapRequest:
    return SwapRequest(id=request_id, **{k: v for k, v in data.items() if k != "id"})


def serialize(req: SwapRequest) -> dict:
    return req.model_dump(mode="json")


def create_request(db, requester: dict, target: dict,
                   skills_offered: list, skills_desired: list) -> SwapRequest:
    """
    requester / target: profile dicts ("uid", "name").
    Stores a pending request in requests/{autoId} and returns it.
    """
    if not skills_offered or not skills_desired:
        raise ValidationError(
            "Please select at least one skill to offer and one skill to receive.")
    if requester["uid"] == target["uid"]:
        raise ValidationError("You cannot send a swap request to yourself.")

    now = _now_utc()
    data = {
        "requesterId": requester["uid"],
        "requestedId": target["uid"],
        "requesterProfile": {"name": requester.get("name", "")},
        "requestedProfile": {"name": target.get("name", "")},
        "skillsOffered": list(skills_offered),
        "skillsDesired": list(skills_desired),
        "status": SwapRequestStatus.pending.value,
        "createdAt": now,
        "updatedAt": now,
    }
    _, ref = db.collection(REQUESTS).add(data)
    logger.info("Swap request %s: %s -> %s", ref.id, requester["uid"], target["uid"])
    return _to_request(ref.id, data)


def get_request(db, request_id: str) -> SwapRequest:
    snap = db.collection(REQUESTS).document(request_id).get()
    if not snap.exists:
        raise NotFoundError(f"Request {request_id} not found")
    return _to_request(snap.id, snap.to_dict() or {})


@firestore.transactional
def _apply_status(transaction, ref, status: SwapRequestStatus, actor_uid: str) -> SwapRequest:
    snap = ref.get(transaction=transaction)
    if not snap.exists:
        raise NotFoundError(f"Request {ref.id} not found")
    req = _to_request(snap.id, snap.to_dict() or {})
    if actor_uid not in (req.requesterId, req.requestedId):
        raise PermissionDenied("You are not part of this swap request")
    if getattr(req, TRANSITIONS[status]) != actor_uid:
        raise PermissionDenied(f"You cannot mark this request as {status.value}")
    if req.status != SwapRequestStatus.pending:
        raise InvalidTransition(f"Request is already {req.status.value}")

    now = _now_utc()
    transaction.update(ref, {
        "status": status.value,
        "updatedAt": now,
    })
    return req.model_copy(update={"status": status, "updatedAt": now})


def update_request_status(db, request_id: str, status, actor_uid: str) -> SwapRequest:
    """
    Moves a pending request to accepted / declined / cancelled.
    Read, rule check and write run in one transaction so two parties
    answering at once cannot both succeed.
    """
    try:
        status = SwapRequestStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown status: {status}")
    if status not in TRANSITIONS:
        raise InvalidTransition(f"A request cannot be moved back to {status.value}")

    ref = db.collection(REQUESTS).document(request_id)
    req = _apply_status(db.transaction(), ref, status, actor_uid)
    logger.info("Swap request %s %s by %s", request_id, status.value, actor_uid)
    return req


def _query(db, field: str, uid: str):
    return db.collection(REQUESTS).where(filter=FieldFilter(field, "==", uid))


def _collect(snaps) -> list:
    requests = []
    for snap in snaps:
        try:
            requests.append(_to_request(snap.id, snap.to_dict() or {}))
        except PydanticValidationError:
            logger.warning("Skipping malformed request %s", snap.id)
    requests.sort(key=lambda r: r.createdAt, reverse=True)
    return requests


def list_requests(db, uid: str) -> dict:
    return {
        "incoming": _collect(_query(db, "requestedId", uid).stream()),
        "outgoing": _collect(_query(db, "requesterId", uid).stream()),
    }


class RequestFeed:
    """
    Keeps the incoming and outgoing request lists of one user in sync through
    two Firestore live queries. Listeners get the merged view after every
    snapshot.
    """

    def __init__(self, db, uid: str):
        self.uid = uid
        self.incoming = []
        self.outgoing = []
        self.error = None
        self.is_loading = True
        self._lock = threading.Lock()
        self._listeners = []
        self._watches = []
        self._db = db

    def start(self):
        for field, attr in (("requestedId", "incoming"), ("requesterId", "outgoing")):
            try:
                watch = _query(self._db, field, self.uid).on_snapshot(
                    self._make_callback(attr))
                self._watches.append(watch)
            except Exception:
                logger.exception("Could not subscribe to %s requests", attr)
                self._set_error(attr)
        return self

    def _make_callback(self, attr: str):
        def on_snapshot(docs, changes, read_time):
            try:
                requests = _collect(docs)
            except Exception:
                logger.exception("Error reading %s requests", attr)
                self._set_error(attr)
                return
            with self._lock:
                setattr(self, attr, requests)
                if attr == "incoming":
                    self.is_loading = False
            self._notify()
        return on_snapshot

    def _set_error(self, attr: str):
        with self._lock:
            self.error = f"Failed to load {attr} requests."
            self.is_loading = False
        self._notify()

    def add_listener(self, fn):
        self._listeners.append(fn)

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "incoming": [serialize(r) for r in self.incoming],
                "outgoing": [serialize(r) for r in self.outgoing],
                "isLoading": self.is_loading,
                "error": self.error,
            }

    def _notify(self):
        view = self.snapshot()
        for fn in list(self._listeners):
            try:
                fn(view)
            except Exception:
                logger.exception("Request feed listener failed")

    def close(self):
        for watch in self._watches:
            watch.unsubscribe()
        self._watches = []
        self._listeners = []
