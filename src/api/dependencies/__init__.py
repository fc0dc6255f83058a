from fastapi import Request

from services.engine import SettlementEngine


def get_engine(request: Request) -> SettlementEngine:
    return request.app.state.engine
