from .auth import router as auth
from .files import router as files
from .links import router as links
from .users import router as users
from .admin import router as admin
from .download import router as download
