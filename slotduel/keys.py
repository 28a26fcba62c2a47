"""Redis key layout. Every key is namespaced by the lower-cased player name."""

USER_PREFIX = "user:"
DUEL_PREFIX = "duel:"
DUEL_OPTOUT_PREFIX = "duel_optout:"
DUEL_COOLDOWN_PREFIX = "duel_cooldown:"
CLAIM_SEGMENT = "claim"

KV_TRUE = "true"

NOTIFICATION_CHANNEL = "duel:notifications"


def kv_key(prefix: str, username: str, *parts: str) -> str:
    base = f"{prefix}{username.lower()}"
    return f"{base}:{':'.join(parts)}" if parts else base


def claim_key(challenger: str, created_at: int) -> str:
    """Claim marker scoped to one challenge instance, not just the challenger."""
    return kv_key(DUEL_PREFIX, challenger, CLAIM_SEGMENT, str(created_at))


def is_challenge_key(key: str) -> bool:
    """True for duel:{challenger}, False for claim markers and other duel:* keys."""
    if not key.startswith(DUEL_PREFIX):
        return False
    return ":" not in key[len(DUEL_PREFIX):]
