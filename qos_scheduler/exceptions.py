class SchedulingError(Exception):
    """Base exception for scheduling errors"""
    pass

class EmptyBatchError(SchedulingError):
    """Raised when a task or VM list is empty and nothing can be profiled"""
    pass

class NoVMAvailableError(SchedulingError):
    """Raised when tasks could not be assigned because no VM exists"""
    pass

class UnknownPolicyError(SchedulingError):
    """Raised for a scheduling policy key that has no scheduler"""
    pass

class MetricsNotFoundError(SchedulingError):
    """Raised when comparing against a scheduler that was never evaluated"""
    pass

class InvalidConfigurationError(SchedulingError):
    """Raised when batch records or weights are out of range"""
    pass
