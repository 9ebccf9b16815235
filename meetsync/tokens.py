"""
Identifier and bearer token generation
All randomness comes from the secrets module
"""

import secrets
import string
import time
import uuid

MEETING_ID_ALPHABET = string.digits + string.ascii_letters
MEETING_ID_LENGTH = 10
ADMIN_TOKEN_BYTES = 32

_BASE36 = string.digits + string.ascii_lowercase


def new_meeting_id() -> str:
    """URL-friendly meeting ID, e.g. "a1B2c3D4e5" (~59 bits)"""
    return "".join(secrets.choice(MEETING_ID_ALPHABET) for _ in range(MEETING_ID_LENGTH))


def new_admin_token() -> str:
    """Admin bearer token: 32 random bytes as 64 hex chars"""
    return secrets.token_hex(ADMIN_TOKEN_BYTES)


def new_device_token() -> str:
    """Device bearer token (UUID4, 122 random bits)"""
    return str(uuid.uuid4())


def new_participant_id() -> str:
    return str(uuid.uuid4())


def new_guest_request_id() -> str:
    """Guest request ID: req_<epoch ms>_<6 base36 chars>"""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"req_{int(time.time() * 1000)}_{suffix}"
