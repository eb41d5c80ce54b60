from typing import Optional

from canteen.domain.models import UserIdentity
from canteen.application.interfaces import IdentityProvider


class SessionIdentityProvider(IdentityProvider):
    """Пользователь, которого выдал внешний OAuth-провайдер после входа"""

    def __init__(self, user: Optional[UserIdentity] = None):
        self._user = user

    def sign_in(self, user: UserIdentity) -> None:
        self._user = user

    def sign_out(self) -> None:
        self._user = None

    def current_user(self) -> Optional[UserIdentity]:
        return self._user
