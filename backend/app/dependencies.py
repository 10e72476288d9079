"""
FastAPI dependencies handing out the services built in main.create_app().
"""
from fastapi import Request

from app.services.catalog import CategoryService, TagService
from app.services.dashboard import DashboardAggregator
from app.services.moderation import ModerationGateway


def get_gateway(request: Request) -> ModerationGateway:
    return request.app.state.gateway


def get_category_service(request: Request) -> CategoryService:
    return request.app.state.categories


def get_tag_service(request: Request) -> TagService:
    return request.app.state.tags


def get_dashboard(request: Request) -> DashboardAggregator:
    return request.app.state.dashboard
