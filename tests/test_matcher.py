"""Tests for matcher.py - deterministic skill overlap and ranking."""

from conftest import make_profile
from matcher import rank_candidates, score, swappable_skills


class TestSwappableSkills:
    """Skill intersections used by the swap request dialog."""

    def test_both_directions(self, alice, bob):
        can_offer, can_receive = swappable_skills(alice, bob)
        assert can_offer == ["Python"]
        assert can_receive == ["Guitar"]

    def test_case_and_whitespace_insensitive(self):
        me = make_profile("me", "Me", ["  python "], ["GUITAR"])
        other = make_profile("o", "Other", ["guitar"], ["Python"])
        can_offer, can_receive = swappable_skills(me, other)
        assert can_offer == ["  python "]
        assert can_receive == ["guitar"]

    def test_no_overlap(self, bob, carol):
        assert swappable_skills(bob, carol) == ([], [])

    def test_missing_lists_are_empty(self):
        assert swappable_skills({"uid": "a"}, {"uid": "b"}) == ([], [])

    def test_keeps_offering_order_and_drops_repeats(self):
        me = make_profile("me", "Me", ["SEO", "React", "seo"], [])
        other = make_profile("o", "Other", [], ["react", "SEO"])
        can_offer, _ = swappable_skills(me, other)
        assert can_offer == ["SEO", "React"]


class TestRankCandidates:
    """Local ranking of swap partners."""

    def test_excludes_current_user(self, alice):
        assert rank_candidates(alice, [alice]) == []

    def test_excludes_profiles_without_overlap(self, bob, carol):
        assert rank_candidates(bob, [carol]) == []

    def test_mutual_match_ranks_first(self, alice, bob, carol):
        # carol only wants what alice offers, bob is a two-way swap
        ranked = rank_candidates(alice, [carol, bob, alice])
        assert [p["uid"] for p in ranked] == ["bob", "carol"]

    def test_larger_overlap_ranks_higher(self):
        me = make_profile("me", "Me", ["A", "B"], ["X", "Y"])
        small = make_profile("s", "Small", ["X"], ["A"])
        big = make_profile("b", "Big", ["X", "Y"], ["A", "B"])
        ranked = rank_candidates(me, [small, big])
        assert [p["uid"] for p in ranked] == ["b", "s"]

    def test_ties_sorted_by_name(self):
        me = make_profile("me", "Me", ["A"], ["X"])
        zed = make_profile("z", "Zed", ["X"], ["A"])
        amy = make_profile("a", "amy", ["X"], ["A"])
        assert [p["uid"] for p in rank_candidates(me, [zed, amy])] == ["a", "z"]

    def test_limit(self):
        me = make_profile("me", "Me", ["A"], ["X"])
        others = [make_profile(f"u{i}", f"User {i}", ["X"], ["A"]) for i in range(10)]
        assert len(rank_candidates(me, others, limit=6)) == 6
        assert rank_candidates(me, others, limit=0) == []

    def test_score(self, alice, bob, carol):
        assert score(alice, bob) == (True, 2)
        assert score(alice, carol) == (False, 1)
