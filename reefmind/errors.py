# reefmind/errors.py


class ReefMindError(Exception):
    """Base error for the reefmind core."""


class ConfigurationError(ReefMindError):
    """
    Malformed host configuration.

    `subject` names the offending parameter / phase / rule so the host can
    point the operator at the exact entry.
    """

    def __init__(self, subject: str, reason: str):
        self.subject = subject
        self.reason = reason
        super().__init__(f"{subject}: {reason}")


class RangeTableError(ConfigurationError):
    pass


class PhaseTableError(ConfigurationError):
    pass


class RuleConfigError(ConfigurationError):
    pass
