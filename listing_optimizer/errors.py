from typing import Optional


class ListingError(Exception):
    """Base class for errors raised by the listing optimizer."""


class BadRequestError(ListingError):
    pass


class TransitionRejected(BadRequestError):
    pass


class SessionNotFound(ListingError):
    pass


class LLMRequestError(ListingError):
    pass


class ParseError(ListingError):
    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class GatewayError(ListingError):
    """A generation call failed. ``cause`` keeps the underlying failure."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ExtractionError(GatewayError):
    pass


class DiagnosisError(GatewayError):
    pass


class OptimizationError(GatewayError):
    pass


class ImageGenerationError(GatewayError):
    pass
