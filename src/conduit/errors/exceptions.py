"""Custom exception classes for Conduit.

Every failure the service can report is one of these types, so callers can
tell a terminal validation failure from a retryable dependency failure
without inspecting message strings.
"""


class ConduitError(Exception):
    """Base exception for Conduit."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(ConduitError):
    """Schema or request validation failure."""

    def __init__(self, message: str, details=None, code: str = "VALIDATION_ERROR"):
        super().__init__(code, message, details, status_code=400)


class MalformedPayload(ValidationError):
    """Webhook or action body could not be decoded into the expected shape."""

    def __init__(self, message: str = "Malformed payload", details=None):
        super().__init__(message, details, code="MALFORMED_PAYLOAD")


class MissingPrimaryEmail(ValidationError):
    """Identity payload carries no primary email address."""

    def __init__(self, user_id: str | None = None):
        super().__init__(
            "No primary email found for user",
            {"user_id": user_id} if user_id else None,
            code="MISSING_PRIMARY_EMAIL",
        )


class NotFoundError(ConduitError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class AuthenticationError(ConduitError):
    """Authentication required or token invalid."""

    def __init__(self, message: str = "Authentication required", code: str = "AUTHENTICATION_ERROR",
                 status_code: int = 401):
        super().__init__(code, message, status_code=status_code)


class InvalidSignature(AuthenticationError):
    """Webhook signature did not verify or the delivery is stale."""

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message, code="INVALID_SIGNATURE", status_code=400)


class MissingSignatureHeaders(AuthenticationError):
    """One or more webhook verification headers were absent."""

    def __init__(self, missing: list[str]):
        super().__init__(
            f"Missing webhook headers: {', '.join(missing)}",
            code="MISSING_SIGNATURE_HEADERS",
            status_code=400,
        )
        self.details = {"missing": missing}


class DependencyError(ConduitError):
    """An external collaborator (data layer, billing, email) failed."""

    def __init__(self, message: str, code: str = "DEPENDENCY_ERROR", details=None):
        super().__init__(code, message, details, status_code=502)


class QueryError(DependencyError):
    """The GraphQL data layer rejected or failed a query."""

    def __init__(self, message: str, details=None):
        super().__init__(f"Data layer query failed: {message}", code="QUERY_ERROR", details=details)


class BillingError(DependencyError):
    """The payment processor call failed."""

    def __init__(self, message: str, details=None):
        super().__init__(f"Billing request failed: {message}", code="BILLING_ERROR", details=details)


class EmailDeliveryError(DependencyError):
    """The outbound email provider rejected a message."""

    def __init__(self, message: str, details=None):
        super().__init__(f"Email delivery failed: {message}", code="EMAIL_DELIVERY_ERROR", details=details)


class ProvisioningError(DependencyError):
    """User provisioning failed after validation; wraps the failing dependency error."""

    def __init__(self, user_id: str, cause: Exception, compensated: bool = False):
        super().__init__(
            f"Failed to provision user '{user_id}': {cause}",
            code="PROVISIONING_ERROR",
            details={"user_id": user_id, "compensated": compensated},
        )
        self.cause = cause
        self.compensated = compensated


class ConfigurationError(ConduitError):
    """A required credential or endpoint is missing at startup."""

    def __init__(self, missing: list[str]):
        super().__init__(
            "CONFIGURATION_ERROR",
            f"Missing required configuration: {', '.join(missing)}",
            details={"missing": missing},
            status_code=500,
        )
        self.missing = missing


class JobTimeoutError(ConduitError):
    """A job attempt exceeded its configured timeout."""

    def __init__(self, job_id: str, timeout_ms: int):
        super().__init__(
            "JOB_TIMEOUT",
            f"Job {job_id} timed out after {timeout_ms}ms",
            status_code=500,
        )
