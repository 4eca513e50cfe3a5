"""Exceptions raised while bootstrapping the MongoDB source."""
from typing import Optional


class SeedError(Exception):
    """Base error; `stage` is the last stage the seeder completed."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class ConfigError(SeedError):
    pass


class ReplicaSetAlreadyInitialized(SeedError):
    pass


class ReplicaSetNotReady(SeedError):
    pass


class UserAlreadyExists(SeedError):
    pass


class AuthenticationFailed(SeedError):
    pass


class CollectionAlreadyExists(SeedError):
    pass


class DuplicateSampleDocument(SeedError):
    pass


# Server error codes the seeder knows how to classify
ALREADY_INITIALIZED = 23
NOT_YET_INITIALIZED = 94
AUTHENTICATION_FAILED = 18
NAMESPACE_EXISTS = 48
USER_ALREADY_EXISTS = 51003
DUPLICATE_KEY = 11000
