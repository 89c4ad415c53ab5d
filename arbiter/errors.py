class ArbiterError(Exception):
    """Base for every error a single request can end in."""

    code = "error"
    status_code = 400

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.code)
        self.detail = detail or self.code


class ValidationError(ArbiterError):
    code = "validation_error"
    status_code = 400


class NotFound(ArbiterError):
    code = "not_found"
    status_code = 404


class Forbidden(ArbiterError):
    code = "forbidden"
    status_code = 403


class Expired(ArbiterError):
    code = "case_expired"
    status_code = 410


class AlreadyRejected(ArbiterError):
    code = "case_rejected"
    status_code = 409


class AlreadyAccepted(ArbiterError):
    code = "case_accepted"
    status_code = 409


class CaseNotAccepted(ArbiterError):
    code = "case_not_accepted"
    status_code = 400


class AppealLimitReached(ArbiterError):
    code = "appeal_limit_reached"
    status_code = 409


class AdjudicationError(ArbiterError):
    """The adjudicator could not produce a verdict. The hearing stays submitted."""


class AdjudicationUnavailable(AdjudicationError):
    code = "adjudication_unavailable"
    status_code = 503


class AdjudicationMalformed(AdjudicationError):
    code = "adjudication_malformed"
    status_code = 502
