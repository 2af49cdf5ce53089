"""Infrastructure modules for the broadcast dispatcher.

Shared components used by the feature modules:
- configuration: Settings management (Settings, BroadcastSettings)
- logging: Structured logging (get_module_logger, bind_request_context)
- notifications: Channel adapters for chat, email and SMS
- operations: Operation results and error classification
- services: Dependency injection providers (SettingsDep, get_settings)
"""

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
]
