import uuid
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from cutroom.core.db import get_session
from cutroom.core.security import get_principal, Principal
from cutroom.modules.rounds.schemas import RoundOut, StepComplete, DecisionIn, DecisionOut
from cutroom.modules.rounds.service import RoundService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session)) -> RoundService:
    return RoundService(session)

@router.get("/projects/{project_id}/rounds", response_model=list[RoundOut])
async def list_rounds(project_id: uuid.UUID, principal: Principal = Depends(get_principal), service: RoundService = Depends(svc)):
    return await service.list_rounds(principal, project_id)

@router.get("/projects/{project_id}/rounds/active", response_model=RoundOut)
async def active_round(project_id: uuid.UUID, principal: Principal = Depends(get_principal), service: RoundService = Depends(svc)):
    return await service.active_round(principal, project_id)

@router.get("/rounds/{round_id}", response_model=RoundOut)
async def get_round(round_id: uuid.UUID, principal: Principal = Depends(get_principal), service: RoundService = Depends(svc)):
    return await service.get_round(principal, round_id)

@router.post("/rounds/{round_id}/steps/{index}/complete", response_model=RoundOut)
async def complete_step(round_id: uuid.UUID, index: int, payload: StepComplete | None = None, principal: Principal = Depends(get_principal), service: RoundService = Depends(svc)):
    link = payload.deliverable_link if payload else None
    return await service.complete_step(principal, round_id, index, link)

@router.post("/rounds/{round_id}/steps/{index}/revert", response_model=RoundOut)
async def revert_step(round_id: uuid.UUID, index: int, principal: Principal = Depends(get_principal), service: RoundService = Depends(svc)):
    return await service.revert_step(principal, round_id, index)

@router.post("/rounds/{round_id}/decision", response_model=DecisionOut)
async def decide(round_id: uuid.UUID, payload: DecisionIn, principal: Principal = Depends(get_principal), service: RoundService = Depends(svc)):
    return await service.decide(principal, round_id, payload.decision)
