"""Project-specific exception types for clearer error semantics."""

class CloudBenchError(Exception):
    """Base class for every error raised by cloudbench."""
    pass

class ConfigError(CloudBenchError, ValueError):
    """Configuration validation errors (missing flag, bad value)."""
    pass

class ProbeError(CloudBenchError):
    """A measurement probe could not produce its value."""
    pass

class ToolError(ProbeError):
    """External tool missing, exited non-zero, or could not be spawned."""
    pass

class ToolTimeout(ToolError):
    """External tool exceeded its bounded wait and was killed."""
    pass

class ParseError(ProbeError):
    """Tool output did not contain the expected figure."""
    pass

class SinkError(CloudBenchError):
    """Output file could not be rewritten."""
    pass
