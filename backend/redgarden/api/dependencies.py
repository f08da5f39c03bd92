from fastapi import Request

from ..config import Settings
from ..core.datastore import Datastore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_datastore(request: Request) -> Datastore:
    return request.app.state.datastore
