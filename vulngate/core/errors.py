class VulngateError(Exception):
    """Base class for every error raised by vulngate."""


class ConfigurationError(VulngateError):
    pass


class GraphTraversalError(VulngateError):
    """The dependency graph could not be built or read."""


class ReportRequestError(VulngateError):
    """The vulnerability service call failed (network, auth or malformed response)."""


class PolicyViolation(VulngateError):
    """
    Actionable vulnerabilities remain after exclusions and threshold.
    The message is the verdict explanation, meant to be shown as-is.
    """

    def __init__(self, explanation: str, outcome=None) -> None:
        super().__init__(explanation)
        self.explanation = explanation
        self.outcome = outcome
