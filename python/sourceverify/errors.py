"""Exception hierarchy for SourceVerify."""


class SourceVerifyError(Exception):
    """Base class for all SourceVerify errors."""


class InvalidInput(SourceVerifyError, ValueError):
    """The pixel buffer or its dimensions are unusable.

    Raised once, before any analyzer runs, and fatal to the whole request.
    """


class InsufficientData(SourceVerifyError):
    """A statistic could not gather enough evidence.

    Not an error from the caller's point of view: the analyzer reports the
    neutral score instead.
    """


class ComputationFault(SourceVerifyError):
    """An analyzer broke its contract after passing its guard."""


class DeadlineExceeded(ComputationFault):
    """An analyzer did not finish before the caller's deadline."""


class CalibrationError(SourceVerifyError):
    """The analyzer calibration file is missing or malformed."""
