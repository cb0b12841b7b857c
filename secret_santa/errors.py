"""
Secret Santa Errors

FATAL:
- ConfigurationError: bad participant list, missing credentials, bad env values
- UnsatisfiableConstraintError: no valid draw found within the attempt ceiling

ISOLATED:
- DeliveryError: one email failed, the rest of the batch keeps going
"""


class SantaError(Exception):
    """Base class for everything the draw reports to the operator"""


class ConfigurationError(SantaError):
    pass


class UnsatisfiableConstraintError(SantaError):
    pass


class DeliveryError(SantaError):
    pass
