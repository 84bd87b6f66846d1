# spicecart/services/exceptions.py


class ServiceError(Exception):
    """Base class for service-layer errors. ``detail`` is safe to show to end users."""

    code = "service_error"

    def __init__(self, detail: str, *, code: str | None = None):
        self.detail = detail
        if code:
            self.code = code
        super().__init__(detail)


class DomainValidationError(ServiceError):
    """Malformed input: non-positive quantity, missing ids."""

    code = "validation_error"


class ChannelMismatchError(ServiceError):
    """Product is not sold in the requested channel, or is price-hidden."""

    code = "channel_mismatch"


class ResourceNotFoundError(ServiceError):
    """Referenced product, variant or cart item does not exist."""

    code = "not_found"


class StoreFailure(ServiceError):
    """Persistence I/O failed. Callers may retry."""

    code = "store_failure"


class PriceHiddenError(ChannelMismatchError):
    """Wholesale product sold on request only; carries the contact-sales path."""

    code = "price_hidden"

    def __init__(self, detail: str, *, contact_label: str | None = None, contact_url: str | None = None):
        super().__init__(detail)
        self.contact_label = contact_label
        self.contact_url = contact_url
