"""
Riddler API Server - FastAPI Backend

Endpoints:
- GET  /auth/message          Message to sign for a bearer token
- POST /auth                  Exchange a wallet signature for a token
- POST /riddles               Publish a riddle (owner)
- POST /riddles/{id}/guess    Guess an answer with a deposit
- POST /withdraw              Withdraw the full balance (owner)
- GET  /riddles               All riddles, creation order
- GET  /riddles/{id}          One riddle
- GET  /min-deposit           Minimum deposit per guess
- GET  /events                Recent RiddleSolved events
- GET  /balance/{address}     Ledger balance of any account
- POST /faucet                Dev funds for the caller (only when enabled)
- GET  /health                Heartbeat + registry status

Reads are public. Writes need "Authorization: Bearer <token>"; the token's
wallet is the caller the registry sees.
"""

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from riddler.constitution import (
    RegistryError,
    Unauthorized,
    NotFound,
    AlreadySolved,
    InsufficientDeposit,
    TransferFailed,
    ReentrantCall,
)
from riddler.identity import to_principal
from riddler.registry import Riddle, RiddleRegistry

from api.auth import (
    AuthToken,
    TOKEN_TTL_SECONDS,
    create_auth_message,
    create_token,
    message_is_fresh,
    set_secret_key,
    verify_signature,
    verify_token,
)

logger = logging.getLogger("riddler.api")


# ============================================================
# MODELS
# ============================================================

class AuthRequest(BaseModel):
    wallet: str = Field(..., max_length=200)
    message: str = Field(..., max_length=500)
    signature: str = Field(..., max_length=500)


class AuthResponse(BaseModel):
    token: str
    wallet: str
    expires_in: int


class CreateRiddleRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=2000)
    answer: str = Field(..., max_length=2000)
    value: int = Field(0, ge=0)


class CreateRiddleResponse(BaseModel):
    riddle_id: int
    answer_commitment: str


class GuessRequest(BaseModel):
    attempt: str = Field(..., max_length=2000)
    value: int = Field(..., ge=0)


class GuessResponse(BaseModel):
    riddle_id: int
    solved: bool


class WithdrawResponse(BaseModel):
    amount: int
    owner: str


class RiddleResponse(BaseModel):
    id: int
    question: str
    answer_commitment: str
    solved: bool
    deposit_collected: int
    solved_by: Optional[str] = None


class FaucetRequest(BaseModel):
    amount: Optional[int] = Field(None, gt=0)


def _riddle_out(riddle: Riddle) -> RiddleResponse:
    data = riddle.to_dict()
    return RiddleResponse(
        id=riddle.id,
        question=riddle.question,
        answer_commitment=data["answer_commitment"],
        solved=riddle.solved,
        deposit_collected=riddle.deposit_collected,
        solved_by=riddle.solved_by,
    )


# Registry error -> HTTP status
ERROR_STATUS: dict[type, int] = {
    Unauthorized: 403,
    NotFound: 404,
    AlreadySolved: 409,
    InsufficientDeposit: 402,
    TransferFailed: 502,
    ReentrantCall: 409,
}


def _get_auth(authorization: Optional[str]) -> AuthToken:
    """Extract and verify the bearer token from the Authorization header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing auth token")
    auth = verify_token(authorization[len("Bearer "):])
    if not auth:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return auth


# ============================================================
# SERVER FACTORY
# ============================================================

def create_app(
    registry: RiddleRegistry,
    auth_secret: str = "",
    faucet_wei: int = 0,
    allowed_origins: Optional[list[str]] = None,
) -> FastAPI:
    """
    Create the FastAPI app around one registry.

    faucet_wei: amount POST /faucet mints per call; 0 disables the endpoint.
    """
    if not auth_secret:
        raise ValueError("auth_secret is required: tokens signed with a known key can be forged")
    set_secret_key(auth_secret)

    app = FastAPI(
        title="Riddler",
        description="Commit/reveal riddle registry",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.registry = registry

    @app.exception_handler(RegistryError)
    async def registry_error_handler(request: Request, exc: RegistryError):
        return JSONResponse(
            status_code=ERROR_STATUS.get(type(exc), 400),
            content={"detail": exc.message, "error": type(exc).__name__},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content={"detail": str(exc)[:200], "error": "ValueError"},
        )

    # ── AUTH ──

    @app.get("/auth/message")
    async def auth_message():
        return {"message": create_auth_message()}

    @app.post("/auth", response_model=AuthResponse)
    async def authenticate(req: AuthRequest):
        recovered = verify_signature(req.message, req.signature)
        if not recovered or recovered.lower() != req.wallet.lower():
            raise HTTPException(status_code=401, detail="Signature verification failed")
        if not message_is_fresh(req.message):
            raise HTTPException(status_code=401, detail="Message expired or malformed")

        return AuthResponse(
            token=create_token(recovered, ttl_seconds=TOKEN_TTL_SECONDS),
            wallet=recovered,
            expires_in=TOKEN_TTL_SECONDS,
        )

    # ── REGISTRY WRITES ──

    @app.post("/riddles", response_model=CreateRiddleResponse)
    async def create_riddle(req: CreateRiddleRequest, authorization: Optional[str] = Header(None)):
        auth = _get_auth(authorization)
        riddle_id = registry.create_riddle(auth.wallet, req.question, req.answer, req.value)
        riddle = registry.get_riddle(riddle_id)
        return CreateRiddleResponse(
            riddle_id=riddle_id,
            answer_commitment=riddle.to_dict()["answer_commitment"],
        )

    @app.post("/riddles/{riddle_id}/guess", response_model=GuessResponse)
    async def guess(riddle_id: int, req: GuessRequest, authorization: Optional[str] = Header(None)):
        auth = _get_auth(authorization)
        solved = registry.guess(auth.wallet, riddle_id, req.attempt, req.value)
        return GuessResponse(riddle_id=riddle_id, solved=solved)

    @app.post("/withdraw", response_model=WithdrawResponse)
    async def withdraw(authorization: Optional[str] = Header(None)):
        auth = _get_auth(authorization)
        amount = registry.withdraw(auth.wallet)
        return WithdrawResponse(amount=amount, owner=registry.owner)

    @app.post("/faucet")
    async def faucet(req: FaucetRequest, authorization: Optional[str] = Header(None)):
        if faucet_wei <= 0:
            raise HTTPException(status_code=404, detail="Faucet disabled")
        auth = _get_auth(authorization)
        amount = min(req.amount or faucet_wei, faucet_wei)
        balance = registry.ledger.mint(auth.wallet, amount)
        return {"wallet": auth.wallet, "minted": amount, "balance": balance}

    # ── PUBLIC READS ──

    @app.get("/riddles", response_model=list[RiddleResponse])
    async def get_riddles():
        return [_riddle_out(r) for r in registry.get_riddles()]

    @app.get("/riddles/{riddle_id}", response_model=RiddleResponse)
    async def get_riddle(riddle_id: int):
        return _riddle_out(registry.get_riddle(riddle_id))

    @app.get("/min-deposit")
    async def min_deposit():
        return {"min_deposit_amount": registry.get_min_deposit_amount()}

    @app.get("/events")
    async def events(limit: int = 50):
        return [e.to_dict() for e in registry.events.recent(min(max(limit, 0), 500))]

    @app.get("/balance/{address}")
    async def balance(address: str):
        address = to_principal(address)
        return {"address": address, "balance": registry.ledger.balance_of(address)}

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "riddler", "registry": registry.get_status()}

    return app
