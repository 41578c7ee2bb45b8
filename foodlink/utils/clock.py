from datetime import datetime, timezone


def utc_now() -> datetime:
	# Naive UTC, matching what the DateTime columns store.
	return datetime.now(timezone.utc).replace(tzinfo=None)


class SystemClock:
	def now(self) -> datetime:
		return utc_now()
