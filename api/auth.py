"""
Wallet Signature Authentication — who is calling the registry.

The registry trusts the principal it is handed, so the HTTP edge has to
establish it. Callers prove they hold a wallet by signing a message with
EIP-191 personal_sign, and get back a short-lived bearer token.

Flow:
  1. Client: GET /auth/message, sign it with the wallet
  2. Server: recover signer address from the signature
  3. Server: issue HMAC token bound to that address (1 hour)
  4. Client: send "Authorization: Bearer <token>" on owner/guess calls
"""

import time
import hmac
import json
import base64
import hashlib
import logging
from dataclasses import dataclass
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct

from riddler.identity import to_principal

logger = logging.getLogger("riddler.api.auth")

AUTH_MESSAGE_PREFIX = "Sign in to Riddler. Timestamp: "
MESSAGE_MAX_AGE_SECONDS = 300
TOKEN_TTL_SECONDS = 3600

_SECRET_KEY = ""  # Set at startup from env


def set_secret_key(key: str):
    """Set the HMAC secret key for token signing."""
    global _SECRET_KEY
    _SECRET_KEY = key


@dataclass
class AuthToken:
    """Authenticated session token."""
    wallet: str         # Checksummed address of the caller
    issued_at: float
    expires_at: float


def create_auth_message(timestamp: Optional[int] = None) -> str:
    ts = timestamp or int(time.time())
    return f"{AUTH_MESSAGE_PREFIX}{ts}"


def message_is_fresh(message: str, now: Optional[float] = None) -> bool:
    """True if the message has our prefix and a timestamp within 5 minutes."""
    if not message.startswith(AUTH_MESSAGE_PREFIX):
        return False
    try:
        ts = int(message[len(AUTH_MESSAGE_PREFIX):])
    except ValueError:
        return False
    return abs((now or time.time()) - ts) <= MESSAGE_MAX_AGE_SECONDS


def verify_signature(message: str, signature: str) -> Optional[str]:
    """
    Recover the signer of an EIP-191 personal_sign signature.

    Returns the checksummed address, or None if the signature is invalid.
    """
    try:
        address = Account.recover_message(encode_defunct(text=message), signature=signature)
        return to_principal(address)
    except Exception as e:
        logger.warning(f"Signature verification failed: {e}")
        return None


def _sign(payload: dict) -> str:
    return hmac.new(
        _SECRET_KEY.encode(), json.dumps(payload, sort_keys=True).encode(), hashlib.sha256
    ).hexdigest()


def create_token(wallet: str, ttl_seconds: int = TOKEN_TTL_SECONDS) -> str:
    """Create an HMAC-signed bearer token for a verified wallet."""
    now = int(time.time())
    payload = {
        "wallet": to_principal(wallet),
        "iat": now,
        "exp": now + ttl_seconds,
    }
    token_data = json.dumps({"payload": payload, "sig": _sign(payload)})
    return base64.urlsafe_b64encode(token_data.encode()).decode()


def verify_token(token: str) -> Optional[AuthToken]:
    """Return the session for a token, or None if expired or tampered."""
    try:
        token_data = json.loads(base64.urlsafe_b64decode(token.encode()))
        payload = token_data["payload"]
        if not hmac.compare_digest(token_data["sig"], _sign(payload)):
            logger.warning("Token signature mismatch")
            return None
        if time.time() > payload["exp"]:
            logger.info(f"Token expired for {payload['wallet']}")
            return None
        return AuthToken(
            wallet=to_principal(payload["wallet"]),
            issued_at=payload["iat"],
            expires_at=payload["exp"],
        )
    except Exception as e:
        logger.warning(f"Token verification failed: {e}")
        return None
