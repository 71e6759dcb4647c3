from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import is_address, to_checksum_address
import jwt
import time
import logging
import secrets

import arena.config as g

router = APIRouter()

sessions = {}    # address -> JWT
challenges = {}  # address -> (pending login message, issued at)

# --- Models ---
class LoginData(BaseModel):
    address: str
    signature: str  # 0x-hex signature over the challenge message

# --- JWT ---
def create_jwt(address: str):
    payload = {
        "sub": address,
        "exp": time.time() + g.JWT_TTL_SECONDS
    }
    return jwt.encode(payload, g.JWT_SECRET, algorithm=g.JWT_ALGORITHM)

def verify_token(token: str) -> str:
    """
    Check a session token.

    Returns:
        The checksummed address the token was issued to.

    Raises:
        HTTPException: 401 if the token is invalid, expired or logged out.
    """
    try:
        payload = jwt.decode(token, g.JWT_SECRET, algorithms=[g.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logging.warning("[AUTH] Token expired")
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError as e:
        logging.warning(f"[AUTH] Invalid token: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token")

    address = payload.get("sub")
    if address not in sessions or sessions[address] != token:
        logging.warning(f"[AUTH] Valid token but no active session for {address}")
        raise HTTPException(status_code=401, detail="Invalid session")
    return address

def get_auth_token(request: Request) -> str:
    auth = request.headers.get("authorization", "")
    if auth and auth.lower().startswith("bearer "):
        return auth[7:]
    return ""

def require_caller(request: Request) -> str:
    """Dependency: the address behind the bearer token, i.e. the transaction sender."""
    token = get_auth_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Missing authentication token")
    return verify_token(token)

def _checksum(address: str) -> str:
    if not is_address(address):
        raise HTTPException(status_code=400, detail="Malformed address")
    return to_checksum_address(address)

# --- Challenge / login ---
def _purge_challenges(now: float):
    for address, (_, issued_at) in list(challenges.items()):
        if now - issued_at > g.CHALLENGE_TTL_SECONDS:
            del challenges[address]

@router.get("/challenge/{address}")
def challenge(address: str):
    """One-time message the wallet signs to open a session."""
    address = _checksum(address)
    message = f"Sign in to Confidential Arena\naddress: {address}\nnonce: {secrets.token_hex(16)}"
    now = time.time()
    _purge_challenges(now)
    if address not in challenges and len(challenges) >= g.MAX_PENDING_CHALLENGES:
        logging.warning("[AUTH] Too many pending challenges")
        raise HTTPException(status_code=429, detail="Too many pending challenges")
    challenges[address] = (message, now)
    logging.debug(f"[AUTH] Challenge issued for {address}")
    return {"message": message}

@router.post("/login")
def login(data: LoginData):
    address = _checksum(data.address)
    pending = challenges.pop(address, None)
    if pending is None:
        logging.error(f"[AUTH] No pending challenge for {address}")
        raise HTTPException(status_code=400, detail="No challenge found")
    message, issued_at = pending
    if time.time() - issued_at > g.CHALLENGE_TTL_SECONDS:
        logging.warning(f"[AUTH] Expired challenge for {address}")
        raise HTTPException(status_code=400, detail="Challenge expired")

    try:
        recovered = Account.recover_message(encode_defunct(text=message), signature=data.signature)
    except Exception as e:
        logging.warning(f"[AUTH] Unreadable signature from {address}: {type(e).__name__}")
        raise HTTPException(status_code=401, detail="Invalid signature")

    if to_checksum_address(recovered) != address:
        logging.error(f"[AUTH] Signature does not match {address}")
        raise HTTPException(status_code=401, detail="Invalid signature")

    token = create_jwt(address)
    sessions[address] = token
    logging.debug(f"[AUTH] Login successful for {address}")
    return {"token": token}

@router.get("/logout")
def logout(request: Request):
    token = get_auth_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="No token provided")
    for address, session_token in list(sessions.items()):
        if session_token == token:
            del sessions[address]
            logging.debug(f"[AUTH] {address} logged out")
            return {"message": "Logged out successfully"}
    raise HTTPException(status_code=401, detail="Invalid token")
