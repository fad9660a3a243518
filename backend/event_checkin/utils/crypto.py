import hashlib
import secrets
from typing import Optional

OTP_MIN = 100000
OTP_MAX = 999999

def generate_otp_code() -> int:
    """Uniform 6-digit code in [100000, 999999]"""
    return OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1)

def normalize_email(email: Optional[str]) -> str:
    """Trimmed, lower-cased email; blank for None"""
    return (email or "").strip().lower()

def derive_key(secret: str) -> bytes:
    """Fixed-length 256-bit key from arbitrary secret material"""
    return hashlib.sha256(secret.encode("utf-8")).digest()
