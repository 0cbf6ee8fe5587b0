from skwirrel_sync.core.exceptions import (
    AppException,
    SourceAPIException,
    RpcTransportException,
    RpcDecodeException,
    RpcRemoteException,
    TransformationException,
    MappingWarning,
    AuthenticationException,
    ValidationException,
    NotFoundException,
    SyncRunException,
)
from skwirrel_sync.core.hooks import SyncEvent, SyncHooks
from skwirrel_sync.core.logging import setup_logging, get_logger

__all__ = [
    "AppException",
    "SourceAPIException",
    "RpcTransportException",
    "RpcDecodeException",
    "RpcRemoteException",
    "TransformationException",
    "MappingWarning",
    "AuthenticationException",
    "ValidationException",
    "NotFoundException",
    "SyncRunException",
    "SyncEvent",
    "SyncHooks",
    "setup_logging",
    "get_logger",
]
