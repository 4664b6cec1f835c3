from .file import File
from .link import Link, LinkAccessLog, link_allowed_users
from .user import User

__all__ = ["File", "Link", "LinkAccessLog", "User", "link_allowed_users"]
