class OrderSystemError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationError(OrderSystemError):
    status_code = 400


class OrderNotFound(OrderSystemError):
    status_code = 404

    def __init__(self, order_id: str):
        super().__init__("Order not found")
        self.order_id = order_id


class InvalidStatusTransition(OrderSystemError):
    status_code = 409


class SignatureVerificationFailed(OrderSystemError):
    status_code = 400

    def __init__(self, message: str = "Webhook signature verification failed"):
        super().__init__(message)


class ConfigurationError(OrderSystemError):
    status_code = 500


class UpstreamProviderError(OrderSystemError):
    """A payment provider API call failed. `details` holds the provider's message."""
    status_code = 500

    def __init__(self, message: str, details: str = ""):
        super().__init__(message)
        self.details = details


class ProviderUnavailable(OrderSystemError):
    status_code = 503


class PersistenceError(OrderSystemError):
    pass


class WebhookProcessingError(OrderSystemError):
    def __init__(self, message: str = "Error processing webhook"):
        super().__init__(message)
