"""
Job-specific error types.

All errors inherit from JobError for easy catching. The message of any error
that ends a job is written verbatim to the job's ``error_message`` column, so
each one must read well to an end user and say which kind of failure it was.
"""

WATCHER_TIMEOUT_MESSAGE = "Timeout: job is taking longer than expected"


class JobError(Exception):
    """Base exception for all job-related failures."""
    pass


class JobNotFoundError(JobError):
    """Raised when a job cannot be found in the store."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class AssetNotFoundError(JobError):
    """Raised when a job references an asset id that does not resolve."""

    def __init__(self, asset_id: str):
        self.asset_id = asset_id
        super().__init__(f"Asset not found: {asset_id}")


class InvalidStateTransitionError(JobError):
    """Raised when attempting a transition outside the lifecycle table."""

    def __init__(self, current_state: str, target_state: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Invalid job state transition: {current_state} -> {target_state}"
        )


class CapabilityError(JobError):
    """Raised when the selected model cannot generate images."""

    def __init__(self, model: str, display_name: str):
        self.model = model
        self.display_name = display_name
        super().__init__(
            f"The model {display_name} cannot generate images; it is an "
            f"analysis-only model. Please select a generation-capable model "
            f"(such as a Gemini image model) in your profile settings."
        )


class ProviderConfigurationError(JobError):
    """Raised when a provider is missing credentials or setup."""
    pass


class TransportError(JobError):
    """Network failure or timeout talking to an external service."""
    pass


class AssetFetchError(TransportError):
    """Raised when an input image cannot be downloaded."""

    def __init__(self, label: str, reason: str):
        self.label = label
        self.reason = reason
        super().__init__(f"Failed to fetch {label} image: {reason}")


class ProviderTransportError(TransportError):
    """Raised when the generation backend call itself fails."""

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"AI provider {provider} request failed: {reason}")


class EmptyGenerationResultError(JobError):
    """Raised when the provider answers but returns no image."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(
            f"AI provider {provider} did not return a valid image for this request"
        )


class StorageCollisionError(JobError):
    """Raised when the result path already exists in the output store."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Result path already exists, refusing to overwrite: {path}"
        )
