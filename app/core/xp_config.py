# app/core/xp_config.py
"""
XP / level configuration.

Every level L requires ``L * XP_PER_LEVEL`` XP to advance to L + 1.
"""

XP_PER_LEVEL = 100

# Values for a freshly created ledger entry
DEFAULT_XP = 0
DEFAULT_LEVEL = 1

# Largest single award accepted (user_xp_log.amount is an integer column)
MAX_AWARD_AMOUNT = 2_147_483_647
