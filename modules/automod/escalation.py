from __future__ import annotations

from .models import PunishmentTier
from .settings import EscalationSettings

__all__ = ["EscalationResolver"]


class EscalationResolver:
    """Maps an author's cumulative violation count to a punishment tier."""

    def determine_punishment(self, settings: EscalationSettings, violation_count: int) -> PunishmentTier:
        """Return the highest tier whose threshold *violation_count* reaches.

        The count passed in already includes the violation being punished.
        Counts below every threshold still earn a warning.
        """
        if not settings.enabled:
            return PunishmentTier.WARN
        tier = PunishmentTier.WARN
        for candidate, threshold in settings.thresholds():
            if violation_count >= threshold:
                tier = candidate
        return tier

    def is_escalation(self, settings: EscalationSettings, violation_count: int) -> bool:
        """True when *violation_count* crosses into a higher tier than the count before it."""
        if violation_count <= 1:
            return False
        current = self.determine_punishment(settings, violation_count)
        previous = self.determine_punishment(settings, violation_count - 1)
        return current.rank > previous.rank
