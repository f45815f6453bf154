"""Constants for taskorch.

This module centralizes the magic numbers of the scoring model and the
notification policy.
"""

from taskorch.models.task import Priority


# Task defaults
DEFAULT_PRIORITY = Priority.MEDIUM

# Notifications
DEADLINE_LEAD_HOURS = 24  # deadline notification fires one day before due
DEADLINE_TITLE_PREFIX = "Deadline tomorrow: "

# Scoring
LEVEL_BONUS_PER_LEVEL = 2
LEVEL_FACTOR_PER_LEVEL = 0.05
XP_PER_POINT = 2
MIN_POINTS = 1

# Consistency is measured over a trailing window of days
CONSISTENCY_WINDOW_DAYS = 30
