from typing import List

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from slotduel.models.dc_models import (
    BalanceModel,
    ChallengeRequestModel,
    ChallengeResultModel,
    CooldownModel,
    DuelOutcomeModel,
    OptOutModel,
    OptOutRequestModel,
    PlayerRequestModel,
)
from slotduel.models.schema_models import DuelChallengeSchema, DuelHistorySchema
from slotduel.redis_subscriber import NotificationSubscriber
from slotduel.services.duel_service import DuelService

duel_router = APIRouter()


def get_duel_service(request: Request) -> DuelService:
    return request.app.state.duel_service


class BalanceAPI:
    @staticmethod
    @duel_router.get("/balance/{player}", response_model=BalanceModel)
    async def get_balance(player: str, service: DuelService = Depends(get_duel_service)):
        balance = await service.balance_store.get_balance(player)
        return BalanceModel(player=player.lower(), balance=balance)


class DuelAPI:
    @staticmethod
    @duel_router.post("/duel/challenge", response_model=ChallengeResultModel)
    async def challenge(
        request: ChallengeRequestModel, service: DuelService = Depends(get_duel_service)
    ):
        return await service.challenge(request.challenger, request.target, request.amount)

    @staticmethod
    @duel_router.get("/duel/incoming/{player}", response_model=DuelChallengeSchema | None)
    async def find_incoming(player: str, service: DuelService = Depends(get_duel_service)):
        return await service.registry.find_incoming_duel(player)

    @staticmethod
    @duel_router.post("/duel/accept", response_model=DuelOutcomeModel)
    async def accept(request: PlayerRequestModel, service: DuelService = Depends(get_duel_service)):
        return await service.accept(request.player)

    @staticmethod
    @duel_router.post("/duel/decline", response_model=DuelChallengeSchema | None)
    async def decline(request: PlayerRequestModel, service: DuelService = Depends(get_duel_service)):
        return await service.decline(request.player)

    @staticmethod
    @duel_router.put("/duel/opt-out", response_model=OptOutModel)
    async def set_opt_out(
        request: OptOutRequestModel, service: DuelService = Depends(get_duel_service)
    ):
        await service.registry.set_opt_out(request.player, request.opt_out)
        return OptOutModel(player=request.player.lower(), opt_out=request.opt_out)

    @staticmethod
    @duel_router.get("/duel/opt-out/{player}", response_model=OptOutModel)
    async def get_opt_out(player: str, service: DuelService = Depends(get_duel_service)):
        opt_out = await service.registry.is_opted_out(player)
        return OptOutModel(player=player.lower(), opt_out=opt_out)

    @staticmethod
    @duel_router.get("/duel/cooldown/{player}", response_model=CooldownModel)
    async def get_cooldown(player: str, service: DuelService = Depends(get_duel_service)):
        remaining = await service.registry.get_cooldown_remaining(player)
        return CooldownModel(player=player.lower(), remaining_seconds=remaining)

    @staticmethod
    @duel_router.get("/duel/history/{player}", response_model=List[DuelHistorySchema])
    async def get_history(
        player: str,
        limit: int = Query(10, ge=1, le=100),
        service: DuelService = Depends(get_duel_service),
    ):
        return await service.duel_log.get_duel_history(player, limit)

    @staticmethod
    @duel_router.get("/duel/events")
    async def stream_events(service: DuelService = Depends(get_duel_service)):
        subscriber = NotificationSubscriber(service.registry.redis)
        return StreamingResponse(subscriber.event_generator(), media_type="text/event-stream")
