"""Domain errors. The front door turns them into the `{ok: false, error, message}` envelope."""


class AppError(Exception):
    status_code = 500
    code = "server_error"
    message = "Serverfehler"

    def __init__(self, message=None, code=None):
        self.message = message or self.message
        self.code = code or self.code
        super().__init__(self.message)

    def to_dict(self):
        return {"ok": False, "error": self.code, "message": self.message}


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    message = "Ungültige Eingabe"


class AuthError(AppError):
    status_code = 401
    code = "not_authenticated"
    message = "Bitte zuerst einloggen"


class SubscriptionRequired(AppError):
    status_code = 402
    code = "subscription_required"
    message = "Dafür ist ein Abo nötig"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"
    message = "Nicht gefunden"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"
    message = "Konflikt"


class ConfigurationError(AppError):
    status_code = 500
    code = "not_configured"
    message = "Dienst nicht konfiguriert"


class UpstreamError(AppError):
    status_code = 502
    code = "upstream_unavailable"
    message = "Externer Dienst nicht erreichbar"
