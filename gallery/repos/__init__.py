"""
Repositories package.

IMPORTANT:
- Do not instantiate repos here.
- Keep this module side-effect free.
"""

__all__ = [
    "LikesRepo",
    "MediaRepo",
    "ProfilesRepo",
    "RolesRepo",
]

from .likes_repo import LikesRepo
from .media_repo import MediaRepo
from .profiles_repo import ProfilesRepo
from .roles_repo import RolesRepo
