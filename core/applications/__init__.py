from core.applications.engine import ApplicationLifecycleEngine, OperationResult

__all__ = [
    'ApplicationLifecycleEngine',
    'OperationResult',
]
