"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for batch failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class ContractError(PipelineError):
    """Raised when input or output contracts are broken."""

    error_code = "CONTRACT_ERROR"


class RecordError(PipelineError):
    """Raised for a record that cannot be processed as given."""

    error_code = "RECORD_ERROR"


class ProviderError(PipelineError):
    """Raised for failures reported by the geocoding/routing provider."""

    error_code = "PROVIDER_ERROR"


class ProviderRequestError(ProviderError):
    """Any provider or transport failure that is neither throttling nor fatal."""

    error_code = "PROVIDER_REQUEST_ERROR"


class QuotaExceededError(ProviderError):
    """HTTP 429. The whole record attempt is retried after a fixed delay."""

    error_code = "QUOTA_EXCEEDED"


class FatalProviderError(ProviderError):
    """Credential problems. Propagated to the scheduler instead of being absorbed."""

    error_code = "PROVIDER_FATAL"


class CredentialsMissingError(FatalProviderError):
    error_code = "API_KEY_MISSING"


class AccessDisallowedError(FatalProviderError):
    error_code = "ACCESS_DISALLOWED"


class AuthenticationFailedError(FatalProviderError):
    error_code = "AUTH_FAILED"
