from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from creative_factory.auth.dependencies import AuthContext, get_current_user, require_workspace_member
from creative_factory.db.deps import get_session
from creative_factory.db.enums import ApprovalStatusEnum
from creative_factory.db.repositories.approvals import ApprovalItemsRepository
from creative_factory.schemas.creative import ApprovalDecisionRequest, ApprovalItemOut
from creative_factory.services.approvals import ApprovalEscalator
from creative_factory.services.errors import ApprovalNotFoundError

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.get("", response_model=List[ApprovalItemOut])
def list_approvals(
    workspace_id: str,
    status: Optional[ApprovalStatusEnum] = ApprovalStatusEnum.pending,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[ApprovalItemOut]:
    require_workspace_member(session, auth, workspace_id)
    items = ApprovalItemsRepository(session).list(workspace_id, status=status)
    return [ApprovalItemOut.model_validate(item) for item in items]


@router.post("/{approval_id}/decision", response_model=ApprovalItemOut)
def decide_approval(
    approval_id: str,
    payload: ApprovalDecisionRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> ApprovalItemOut:
    item = ApprovalItemsRepository(session).get_for_member(approval_id, auth.user_id)
    if item is None:
        raise ApprovalNotFoundError(approval_id)
    decided = ApprovalEscalator(session).decide(
        item,
        reviewer_id=auth.user_id,
        decision=ApprovalStatusEnum(payload.decision),
        reason=payload.reason,
    )
    return ApprovalItemOut.model_validate(decided)
