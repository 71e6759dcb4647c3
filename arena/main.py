from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from arena.auth import router as auth_router
from arena.game import router as game_router
from arena.crypto import router as crypto_router
from arena.acl import ACL
from arena.coprocessor import MockCoprocessor
from arena.ledger import ArenaLedger
from arena.oracle import DecryptionOracle
import arena.config as g
import uvicorn
import logging

logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)


def init_state(coprocessor=None):
    """Wire a fresh coprocessor, ACL, ledger and oracle into the runtime globals."""
    g.coprocessor = coprocessor or MockCoprocessor()
    g.acl = ACL()
    g.ledger = ArenaLedger(g.coprocessor, g.acl, g.LEDGER_ADDRESS, floor_at_zero=g.BALANCE_FLOOR_AT_ZERO)
    g.oracle = DecryptionOracle(g.coprocessor, g.acl)
    logger.info(f"[STARTUP] Arena ledger at {g.ledger.address}")


init_state()

app = FastAPI(
    title="Confidential Arena API",
    description="Encrypted wagering ledger with owner-only decryption.",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix="/auth")
app.include_router(game_router, prefix="/arena")
app.include_router(crypto_router, prefix="/crypto")

@app.get("/")
def read_root():
    return {"message": "Confidential Arena API is running."}

@app.get("/health")
def read_health():
    return {"status": "ok"}

if __name__ == "__main__":
    uvicorn.run("arena.main:app", host="0.0.0.0", port=8000, reload=True)
