"""Tests for the announcement cooldown tracker."""

from core.cooldown import CooldownTracker

MINUTE = 60 * 1000
COOLDOWN = 15 * MINUTE
T = 1_800_000_000_000
KEY = ("Twitch", "streamer")


class TestShouldNotify:
    def test_never_notified_is_eligible(self):
        assert CooldownTracker().should_notify(KEY, T, COOLDOWN) is True

    def test_inside_window_is_suppressed(self):
        tracker = CooldownTracker()
        tracker.record_notified(KEY, T)

        assert tracker.should_notify(KEY, T + 10 * MINUTE, COOLDOWN) is False

    def test_after_window_is_eligible(self):
        tracker = CooldownTracker()
        tracker.record_notified(KEY, T)

        assert tracker.should_notify(KEY, T + 16 * MINUTE, COOLDOWN) is True

    def test_boundary_is_strict(self):
        tracker = CooldownTracker()
        tracker.record_notified(KEY, T)

        assert tracker.should_notify(KEY, T + COOLDOWN, COOLDOWN) is False
        assert tracker.should_notify(KEY, T + COOLDOWN + 1, COOLDOWN) is True

    def test_manual_ignores_window(self):
        tracker = CooldownTracker()
        tracker.record_notified(KEY, T)

        assert tracker.should_notify(KEY, T + MINUTE, COOLDOWN, manual=True) is True

    def test_identities_are_independent(self):
        tracker = CooldownTracker()
        tracker.record_notified(KEY, T)

        assert tracker.should_notify(("YouTube", "streamer"), T + MINUTE, COOLDOWN) is True


class TestBookkeeping:
    def test_prime_blocks_like_a_notification(self):
        tracker = CooldownTracker()
        tracker.prime_without_notifying(KEY, T)

        assert tracker.last_notified(KEY) == T
        assert tracker.should_notify(KEY, T + MINUTE, COOLDOWN) is False

    def test_next_eligible_at(self):
        tracker = CooldownTracker()
        assert tracker.next_eligible_at(KEY, COOLDOWN) is None

        tracker.record_notified(KEY, T)
        assert tracker.next_eligible_at(KEY, COOLDOWN) == T + COOLDOWN

    def test_clear(self):
        tracker = CooldownTracker()
        tracker.record_notified(KEY, T)
        tracker.clear()

        assert len(tracker) == 0
        assert tracker.last_notified(KEY) == 0
