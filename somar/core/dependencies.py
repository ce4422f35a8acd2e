# somar/core/dependencies.py
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from somar.config.database import get_db
from somar.modules.orders.schemas import SplitConfig


def get_config_provider(request: Request):
    return request.app.state.config_provider


def get_split_config(
    request: Request,
    db: Session = Depends(get_db)
) -> SplitConfig:
    """Configuración global vigente (caché del proceso)"""
    return get_config_provider(request).get(db)


def get_receipt_storage(request: Request):
    return request.app.state.receipt_storage


def get_notifier(request: Request):
    return request.app.state.notifier
