# app/exceptions.py
"""
Error taxonomy for the commission settlement service.

Every error carries the HTTP status the service layer should answer with,
so routes can hand the (error_dict, status_code) tuple straight to
_handle_service_result.
"""


class SettlementError(Exception):
    """Base exception for settlement failures."""
    status_code = 500

    def __init__(self, message, status_code=None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_result(self):
        return {"success": False, "error": self.message}, self.status_code


class InvalidPeriodError(SettlementError):
    """Bad month, year, zone or cut token. Raised before any I/O."""
    status_code = 400


class MissingConfigurationError(SettlementError):
    """A commission variable required by the cut has no value and no default."""
    status_code = 400


class PriorCutMissingError(SettlementError):
    """Cut N was requested but cut N-1 was never saved for the period and zone."""
    status_code = 409


class StorageWriteError(SettlementError):
    """The upsert of a cut failed; nothing of the batch was committed."""
    status_code = 500
