"""
SM-2 algorithm constants.

This module contains static SuperMemo-2 scheduling parameters.
No runtime configuration or path defaults - pure constants only.
"""

# Easiness factor assigned to a freshly created card.
DEFAULT_EASINESS_FACTOR: float = 2.5

# The easiness factor never drops below this floor (there is no ceiling).
MIN_EASINESS_FACTOR: float = 1.3

# Lowest quality grade that counts as a successful recall.
PASSING_QUALITY: int = 3

# Intervals (in days) used for the first and second consecutive passes.
FIRST_INTERVAL_DAYS: int = 1
SECOND_INTERVAL_DAYS: int = 6

# Interval assigned after a failed recall.
LAPSE_INTERVAL_DAYS: int = 1

# Inclusive bounds of the quality scale accepted by the scheduler.
MIN_QUALITY: int = 0
MAX_QUALITY: int = 5
