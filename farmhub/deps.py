# farmhub/deps.py
from farmhub.farm_service import FarmService
from farmhub.user_service import UserService

_user_service = UserService()
_farm_service = FarmService()


def get_user_service() -> UserService:
    return _user_service


def get_farm_service() -> FarmService:
    return _farm_service
