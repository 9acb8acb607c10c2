import hmac
import logging
from typing import Callable, Optional

from storefront.errors import PasscodeError

logger = logging.getLogger(__name__)


class AdminSession:
    """Admin mode flag for one visitor session.

    The passcode only decides which controls are offered; it is a
    convenience gate, not an access control. Anything that needs real
    protection has to live behind a server-side check.
    """

    def __init__(self, passcode: str, is_admin: bool = False):
        self.passcode = passcode
        self.is_admin = is_admin

    def toggle(self, prompt: Callable[[], Optional[str]]) -> bool:
        """Leave admin mode, or ask ``prompt`` for the passcode and enter it.

        Returns the new admin state. Raises PasscodeError on a mismatch (a
        cancelled prompt counts as a mismatch) and leaves the flag alone.
        """
        if self.is_admin:
            self.is_admin = False
            logger.info("admin mode off")
            return False
        entered = prompt()
        if entered is not None and hmac.compare_digest(
            entered.encode("utf-8"), self.passcode.encode("utf-8")
        ):
            self.is_admin = True
            logger.info("admin mode on")
            return True
        raise PasscodeError("Incorrect passcode")
