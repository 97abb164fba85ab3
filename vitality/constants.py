"""
Domain constants for the vitality engine.
Starting values, growth factors and state names shared across services.
"""

# Character defaults (applied at account setup)
DEFAULT_MAX_HP = 100
DEFAULT_STARTING_LEVEL = 1
DEFAULT_XP_THRESHOLD = 100  # XP needed to leave level 1
DEFAULT_PUNISHMENT_TASK = "50 push-ups"

# Leveling curve: next threshold = floor(threshold * XP_THRESHOLD_GROWTH)
XP_THRESHOLD_GROWTH = 1.5

# Rules defaults
DEFAULT_HP_PENALTY_RATE = 5  # HP lost per missed habit per day
DEFAULT_XP_MULTIPLIER = 1.0  # Stored for future scaling, not applied

# Habit defaults
DEFAULT_HABIT_XP_REWARD = 10
DEFAULT_HABIT_HP_IMPACT = 5

# Lockout states
LOCKOUT_NORMAL = "normal"
LOCKOUT_DEPLETED = "depleted"
LOCKOUT_RESTORING = "restoring"
LOCKOUT_RESTORED = "restored"

# Notification kinds
NOTIFICATION_LEVEL_UP = "level_up"
NOTIFICATION_DECAY = "decay"
NOTIFICATION_DEPLETED = "depleted"
NOTIFICATION_RESTORED = "restored"
NOTIFICATION_ERROR = "error"

# User-facing messages
MSG_CONFIRM_PUNISHMENT = "You must confirm completion of your punishment"
MSG_RESTORE_FAILED = "Failed to restore HP"
MSG_RESTORED = "HP restored! Get back in the game!"
MSG_LOCKED_OUT = "HP depleted. Complete your punishment to continue."
MSG_STATS_UPDATE_FAILED = "Failed to update stats"

# Log directories
DEFAULT_LOG_DIRECTORY_PROD = "/var/log/vitality"
DEFAULT_LOG_DIRECTORY_DEV = "./logs"
