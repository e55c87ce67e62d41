"""
BlitzWatch - Crowdsourced speed camera and patrol car reports

Report lifecycle with vote-driven retirement, realtime reconciliation of the
local report cache, and moderation gates for user text.
"""

__version__ = "0.1.0"
