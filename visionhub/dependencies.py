# visionhub/dependencies.py
"""
FastAPI dependencies — hand the core services built in main.py to the routers.
The instances live on app.state, so tests can build an app with their own.
"""

from fastapi import Request


def get_store(request: Request):
    return request.app.state.store


def get_hub(request: Request):
    return request.app.state.hub


def get_monitor(request: Request):
    return request.app.state.monitor


def get_supervisor(request: Request):
    return request.app.state.supervisor


def get_storage(request: Request):
    return request.app.state.storage
