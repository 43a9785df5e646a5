class WebhookError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class MethodNotAllowedError(WebhookError):
    def __init__(self):
        super().__init__("Method Not Allowed", status_code=405)


class ForbiddenDomainError(WebhookError):
    def __init__(self):
        super().__init__("Forbidden (domain)", status_code=403)


class InvalidSignatureError(WebhookError):
    def __init__(self):
        super().__init__("Unauthorized (hmac)", status_code=401)


class SecretNotConfiguredError(WebhookError):
    def __init__(self):
        super().__init__("Server misconfigured (secret)", status_code=500)


class MalformedPayloadError(WebhookError):
    def __init__(self):
        super().__init__("Bad JSON", status_code=400)
