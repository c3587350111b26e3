from .app_context import AppContext, build_app_context
from .command_emitter import CommandEmitter
from .dispatch import dispatch_payload
from .utils import log_exception

__all__ = ["AppContext", "build_app_context", "CommandEmitter", "dispatch_payload", "log_exception"]
