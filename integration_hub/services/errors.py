"""Service-level errors raised to callers of the integration service."""


class IntegrationServiceError(Exception):
    """Base service error."""
    pass


class IntegrationValidationError(IntegrationServiceError):
    """Request rejected before anything was persisted."""
    pass


class IntegrationNotFoundError(IntegrationServiceError):
    """Integration does not exist or belongs to another user."""

    def __init__(self, integration_id: str):
        super().__init__("Integration not found")
        self.integration_id = integration_id


class IntegrationInactiveError(IntegrationServiceError):
    """Integration is disabled."""

    def __init__(self, integration_id: str):
        super().__init__("Integration is not active")
        self.integration_id = integration_id
