"""Pre-meeting schedule poll."""

from governance.schedule.poll import SchedulePoll

__all__ = ["SchedulePoll"]
