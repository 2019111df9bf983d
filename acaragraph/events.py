# ============================================
#   Acaragraph — Core Events
# ============================================
#
# The core never talks to sockets. It hands (event, payload) pairs to an
# emit callable; the transport relays them to every live connection.

PRESENCE_CHANGED = "presence_changed"   # payload: list of public profiles
MESSAGE_CREATED = "message_created"     # payload: fan-out message dict
ADMIN_ACTION = "admin_action"           # payload: {userId, action, timestamp, byAdminId}


def noop_emit(event, payload):
    return None
