"""Exceptions raised by the benchmarking engine and its clients."""

from typing import Optional


class LLMClientError(Exception):
    """Raised by a client when a single prompt invocation fails."""

    def __init__(self, message: str, provider_name: str = "Unknown", error_code: int = -1):
        super().__init__(message)
        self.provider_name = provider_name
        self.error_code = error_code

    def __str__(self):
        message = super().__str__()
        prefix = ""
        if self.provider_name and self.provider_name != "Unknown":
            prefix += f"[{self.provider_name}]"
        if self.error_code != -1:
            prefix += f"[{self.error_code}]"
        return f"{prefix} {message}" if prefix else message


class BenchmarkConfigError(ValueError):
    """Raised for invalid caller input, before any work is scheduled."""
    pass


class PoolShutdownError(RuntimeError):
    """Raised when work is submitted to a pool that has been shut down."""
    pass


class PromptTemplateError(BenchmarkConfigError):
    """Raised when a prompt template cannot be rendered with the given parameters."""

    def __init__(self, message: str, template_name: Optional[str] = None, parameter_name: Optional[str] = None):
        super().__init__(message)
        self.template_name = template_name
        self.parameter_name = parameter_name

    def __str__(self):
        message = super().__str__()
        if self.template_name:
            return f"[template: {self.template_name}] {message}"
        return message
