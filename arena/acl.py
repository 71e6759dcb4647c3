from typing import Dict, Set
import logging
import threading

from eth_utils import to_checksum_address

from arena.handles import Handle

logger = logging.getLogger(__name__)


class ACL:
    """Which identities may ask the oracle to decrypt which handle.

    Grants are permanent; there is no revoke.
    """

    def __init__(self):
        self._grants: Dict[bytes, Set[str]] = {}
        self._lock = threading.Lock()

    def grant(self, handle: Handle, identity: str):
        identity = to_checksum_address(identity)
        with self._lock:
            self._grants.setdefault(handle.raw, set()).add(identity)
        logger.debug(f"[ACL] {identity} may decrypt {handle.hex()}")

    def is_granted(self, handle: Handle, identity: str) -> bool:
        identity = to_checksum_address(identity)
        with self._lock:
            return identity in self._grants.get(handle.raw, ())

    def grantees(self, handle: Handle) -> Set[str]:
        with self._lock:
            return set(self._grants.get(handle.raw, ()))
