"""Custom exceptions for platformctl."""


class PlatformError(Exception):
    """Base exception for all platformctl errors."""
    pass


class ConfigurationError(PlatformError):
    """Exception raised when a configuration file cannot be read or parsed."""
    pass


class StartupError(PlatformError):
    """Exception raised when a container never reaches its wait condition."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Container '{name}' failed to start: {reason}")


class MissingDependencyError(PlatformError):
    """Exception raised when a container is started without a required collaborator."""
    pass


class ContainerNotFoundError(PlatformError):
    """Exception raised when a started container is looked up by an unknown name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'No started container found with name "{name}"')


class NotInitializedError(PlatformError):
    """Exception raised when an operation needs components that are not set up yet."""
    pass


class DataImportError(PlatformError):
    """Exception raised when the seed data import cannot be prepared or run."""
    pass


class ImageVerificationError(PlatformError):
    """Exception raised when an image cannot be pulled or started for verification."""

    def __init__(self, image: str, reason: str):
        self.image = image
        self.reason = reason
        super().__init__(f"Image {image} could not be verified: {reason}")
