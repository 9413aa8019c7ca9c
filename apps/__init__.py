from apps import api

from apps.api.main import (app, create_app, main,)

__all__ = ['api', 'app', 'create_app', 'main']
