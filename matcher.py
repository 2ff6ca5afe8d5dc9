# matcher.py
"""
Matching rules:
1) What I can offer someone:
     my skillsOffered that appear in their skillsDesired
2) What I can receive from someone:
     their skillsOffered that appear in my skillsDesired

Comparison is case-insensitive and ignores surrounding whitespace.
A candidate with both directions filled is a mutual swap and always
ranks above a one-sided match.
"""


def _clean(s):
    return (s or "").strip().lower()


def _intersect(offered: list, desired: list) -> list:
    wanted = {_clean(s) for s in desired or []}
    out = []
    seen = set()
    for skill in offered or []:
        key = _clean(skill)
        if key and key in wanted and key not in seen:
            seen.add(key)
            out.append(skill)
    return out


def swappable_skills(current: dict, target: dict) -> tuple[list, list]:
    """
    Returns (can_offer, can_receive) for a swap request between two profiles.
    Order follows the offering profile's list.
    """
    can_offer = _intersect(current.get("skillsOffered"),
                           target.get("skillsDesired"))
    can_receive = _intersect(target.get("skillsOffered"),
                             current.get("skillsDesired"))
    return can_offer, can_receive


def score(current: dict, candidate: dict) -> tuple[bool, int]:
    can_offer, can_receive = swappable_skills(current, candidate)
    return bool(can_offer and can_receive), len(can_offer) + len(can_receive)


def rank_candidates(current: dict, profiles: list, limit: int = 6) -> list:
    """
    current: profile dict with "uid", "skillsOffered", "skillsDesired"
    profiles: list of profile dicts (every user in the system)
    Returns up to `limit` profiles, best match first.
    """
    me = str(current.get("uid", ""))
    scored = []
    for profile in profiles:
        if str(profile.get("uid", "")) == me:
            continue  # skip self
        mutual, overlap = score(current, profile)
        if overlap == 0:
            continue
        scored.append((not mutual, -overlap, _clean(profile.get("name")), profile))

    scored.sort(key=lambda t: t[:3])
    return [t[3] for t in scored[:max(limit, 0)]]
