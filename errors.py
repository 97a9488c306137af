class LedgerError(ValueError):
    """Base for every typed failure a ledger or moderation call can raise.

    `code` is the snake_case string sent back in the JSON error body and
    `status` is the HTTP status the web layer answers with.
    """

    code = "ledger_error"
    status = 400

    def __init__(self, message=None, code=None):
        super().__init__(message or self.code)
        if code:
            self.code = code

    def to_dict(self):
        return {"error": self.code, "message": str(self)}


class NotFound(LedgerError):
    code = "not_found"
    status = 404


class InsufficientFunds(LedgerError):
    code = "insufficient_funds"
    status = 400


class AlreadyInClan(LedgerError):
    code = "already_in_clan"
    status = 409


class AlreadyExists(LedgerError):
    code = "already_exists"
    status = 409


class Forbidden(LedgerError):
    code = "forbidden"
    status = 403


class InvalidArgument(LedgerError):
    code = "invalid_argument"
    status = 400


class TooEarly(LedgerError):
    code = "too_early"
    status = 429

    def __init__(self, next_available, message=None):
        super().__init__(message or "bonus_already_claimed")
        self.next_available = next_available

    def to_dict(self):
        d = super().to_dict()
        d["next_available"] = self.next_available.isoformat()
        return d
