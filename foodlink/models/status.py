import enum

from foodlink.errors import InvalidStatus


class PostStatus(str, enum.Enum):
	AVAILABLE = "AVAILABLE"
	CLAIMED = "CLAIMED"
	COMPLETED = "COMPLETED"
	CANCELLED = "CANCELLED"
	EXPIRED = "EXPIRED"

	@property
	def is_terminal(self):
		return self in TERMINAL_POST_STATUSES


class ClaimStatus(str, enum.Enum):
	ACTIVE = "ACTIVE"
	CANCELLED = "CANCELLED"
	COMPLETED = "COMPLETED"

	@property
	def is_terminal(self):
		return self is not ClaimStatus.ACTIVE


TERMINAL_POST_STATUSES = frozenset({PostStatus.COMPLETED, PostStatus.CANCELLED, PostStatus.EXPIRED})

# Transitions reachable through the claim workflow and the expiry sweep.
# CANCELLED is only reachable through an admin override, which ignores this table.
POST_TRANSITIONS = {
	PostStatus.AVAILABLE: frozenset({PostStatus.CLAIMED, PostStatus.EXPIRED}),
	PostStatus.CLAIMED: frozenset({PostStatus.COMPLETED, PostStatus.AVAILABLE, PostStatus.EXPIRED}),
	PostStatus.COMPLETED: frozenset(),
	PostStatus.CANCELLED: frozenset(),
	PostStatus.EXPIRED: frozenset(),
}

CLAIM_TRANSITIONS = {
	ClaimStatus.ACTIVE: frozenset({ClaimStatus.COMPLETED, ClaimStatus.CANCELLED}),
	ClaimStatus.COMPLETED: frozenset(),
	ClaimStatus.CANCELLED: frozenset(),
}


def can_transition(current: PostStatus, target: PostStatus) -> bool:
	return target in POST_TRANSITIONS[current]


def can_transition_claim(current: ClaimStatus, target: ClaimStatus) -> bool:
	return target in CLAIM_TRANSITIONS[current]


def parse_post_status(raw) -> PostStatus:
	"""Turn untrusted input (admin form / JSON) into a PostStatus or raise InvalidStatus."""
	if isinstance(raw, PostStatus):
		return raw
	value = (raw or "").strip().upper() if isinstance(raw, str) else ""
	try:
		return PostStatus(value)
	except ValueError:
		allowed = ", ".join(status.value for status in PostStatus)
		raise InvalidStatus(f"Unknown post status {raw!r}. Expected one of: {allowed}.") from None
