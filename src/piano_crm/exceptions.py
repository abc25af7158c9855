"""Custom exceptions for Piano CRM."""


class CrmError(Exception):
    """Base exception for all Piano CRM errors."""


class ConfigurationError(CrmError):
    """Exception raised for configuration related errors."""


class AuthenticationError(CrmError):
    """Exception raised for authentication failures."""


class GmailAPIError(CrmError):
    """Exception raised for Gmail API related errors."""


class EmailSendError(CrmError):
    """Exception raised when an outgoing email cannot be delivered to SMTP."""


class StorageError(CrmError):
    """Exception raised for file storage failures."""


class NotFoundError(CrmError):
    """Exception raised when a requested record does not exist."""


class ValidationError(CrmError):
    """Exception raised for data validation errors."""


class AIProviderError(CrmError):
    """Exception raised when an AI provider call fails."""


class AIRateLimitError(AIProviderError):
    """Exception raised when an AI provider rejects a call for quota reasons."""


class AIModelUnavailableError(AIProviderError):
    """Exception raised when the configured AI model cannot be found."""
