class ArenaError(Exception):
    """Base error. ``status_code`` is what the HTTP layer answers with."""

    status_code = 400


class AlreadyRegistered(ArenaError):
    def __init__(self, identity: str):
        super().__init__("Player already registered")
        self.identity = identity


class NotRegistered(ArenaError):
    def __init__(self, identity: str):
        super().__init__("Player not registered")
        self.identity = identity


class InvalidProof(ArenaError):
    pass


class InvalidHandle(ArenaError):
    pass


class AccessDenied(ArenaError):
    status_code = 403


class InvalidAuthorization(ArenaError):
    status_code = 401


class CoprocessorError(ArenaError):
    """Infrastructure failure; the operation aborted without committing."""

    status_code = 503
