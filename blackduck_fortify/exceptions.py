class BlackDuckFortifyError(RuntimeError):
    """Base class for every error raised while resolving Fortify mappings."""


class MappingLoadError(BlackDuckFortifyError, ValueError):
    """Raised when the mapping definition cannot be read or is malformed."""


class FortifyApiError(BlackDuckFortifyError):
    """Raised when a Fortify REST call fails or answers with an unexpected status."""

    def __init__(self, operation: str, message: str, status_code: int | None = None):
        self.operation = operation
        self.status_code = status_code
        if status_code is not None:
            message = f"{operation} returned HTTP {status_code}: {message}"
        else:
            message = f"{operation} failed: {message}"
        super().__init__(message)


class ApplicationLookupError(FortifyApiError):
    """Raised when an application/version existence query fails."""


class ApplicationCreateError(FortifyApiError):
    """Raised when Fortify refuses to create an application/version."""


class AttributeCatalogError(FortifyApiError):
    """Raised when the attribute definitions cannot be fetched or parsed."""


class AttributeValueError(BlackDuckFortifyError):
    """Base class for configured attribute values that cannot be sent to Fortify."""

    def __init__(self, attribute: str, message: str):
        self.attribute = attribute
        super().__init__(message)


class MissingAttributeValueError(AttributeValueError):
    def __init__(self, attribute: str, location: str):
        self.location = location
        super().__init__(
            attribute,
            f"Attribute value for {attribute} is missing in {location}",
        )


class InvalidOptionError(AttributeValueError):
    def __init__(self, attribute: str, value: str):
        self.value = value
        super().__init__(
            attribute,
            f'{attribute}\'s attribute value "{value}" is not a valid option!',
        )


class AttributeTypeError(AttributeValueError):
    def __init__(self, attribute: str, value: str, expected_type: str, hint: str = ""):
        self.value = value
        self.expected_type = expected_type
        message = f'{attribute}\'s attribute value "{value}" is not a valid {expected_type}!'
        if hint:
            message = f"{message} {hint}"
        super().__init__(attribute, message)


class PartialProvisioningError(BlackDuckFortifyError):
    """
    Raised when Fortify created an application version but a later step
    (attribute update or commit) failed. The version is left uncommitted in
    Fortify and `application_id` identifies it for cleanup.
    """

    def __init__(self, application_id: int, step: str, cause: Exception):
        self.application_id = application_id
        self.step = step
        self.cause = cause
        super().__init__(
            f"Fortify application version {application_id} was created but the "
            f"'{step}' step failed: {cause}",
        )
