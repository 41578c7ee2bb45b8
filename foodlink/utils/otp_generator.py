import hashlib
import hmac
import os
import random
import re
from datetime import datetime, timedelta


PICKUP_CODE_LENGTH = 6
PICKUP_CODE_PATTERN = re.compile(r"[0-9]{6}")


def generate_otp(length: int = PICKUP_CODE_LENGTH) -> str:
	digits = "0123456789"
	return "".join(random.SystemRandom().choice(digits) for _ in range(length))


def code_expiry(generated_at: datetime, minutes: int = 10) -> datetime:
	return generated_at + timedelta(minutes=minutes)


def is_code_expired(expires_at: datetime, now: datetime) -> bool:
	if expires_at is None:
		return True
	return now > expires_at


def is_well_formed_code(code: str) -> bool:
	return bool(PICKUP_CODE_PATTERN.fullmatch(code or ""))


def _otp_key(secret_key: str) -> bytes:
	source = (secret_key or os.getenv("SECRET_KEY") or "foodlink-otp-fallback-key").encode("utf-8")
	return hashlib.sha256(source).digest()


def hash_pickup_code(code: str, claim_id: int, secret_key: str) -> str:
	payload = f"claim:{claim_id}:{(code or '').strip()}".encode("utf-8")
	return hmac.new(_otp_key(secret_key), payload, hashlib.sha256).hexdigest()


def verify_pickup_code(stored_hash: str, entered_code: str, claim_id: int, secret_key: str) -> bool:
	if not stored_hash or not entered_code:
		return False
	candidate = hash_pickup_code(entered_code, claim_id, secret_key)
	return hmac.compare_digest(stored_hash, candidate)
