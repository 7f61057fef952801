"""Well-known event kind constants.

Defined centrally so the aggregator and the display layer reference the
same strings.
"""

# --- Media (aggregator → display) -----------------------------------------

MEDIA_PLAYER_CHANGED = "media_player.changed"

# --- Inhibition locks (aggregator → display) -------------------------------

IDLE_INHIBITOR_INHIBIT = "idle_inhibitor.inhibit"
IDLE_INHIBITOR_UNINHIBIT = "idle_inhibitor.uninhibit"

# --- Subscription wildcard -------------------------------------------------

ALL = "*"
