class StorefrontError(Exception):
    """Base class for failures shown to the visitor as a notice."""


class FormValidationError(StorefrontError):
    """A required form field was left empty; nothing was changed."""


class PasscodeError(StorefrontError):
    """The admin passcode did not match; the session stays public."""
