"""Node marketplace endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from x4pn_meter.api.v1.dependencies import CurrentUserDep, LifecycleDep, SessionDep
from x4pn_meter.core.errors import ForbiddenError
from x4pn_meter.schemas.node import NodeRegister, NodeResponse, NodeUpdate
from x4pn_meter.services.nodes import NodeRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/nodes", tags=["nodes"])


@router.get("", response_model=list[NodeResponse])
def list_active_nodes(db: SessionDep) -> list[NodeResponse]:
    """List nodes currently accepting sessions."""
    return [NodeResponse.model_validate(node) for node in NodeRegistry(db).list_active()]


@router.get("/operator/{address}", response_model=list[NodeResponse])
def list_operator_nodes(address: str, db: SessionDep) -> list[NodeResponse]:
    """List every node registered by an operator, active or not."""
    return [NodeResponse.model_validate(node) for node in NodeRegistry(db).list_by_operator(address)]


@router.get("/{node_id}", response_model=NodeResponse)
def get_node(node_id: str, db: SessionDep) -> NodeResponse:
    node = NodeRegistry(db).get(node_id)
    if node is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Node not found",
        )
    return NodeResponse.model_validate(node)


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=NodeResponse,
)
def register_node(
    payload: NodeRegister,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> NodeResponse:
    """Register a node operated by the authenticated wallet."""
    try:
        node = NodeRegistry(db).register(current_user.wallet_address, **payload.model_dump())
    except ValueError as err:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(err),
        ) from err
    db.commit()
    return NodeResponse.model_validate(node)


@router.patch("/{node_id}", response_model=NodeResponse)
def update_node(
    node_id: str,
    payload: NodeUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
    lifecycle: LifecycleDep,
) -> NodeResponse:
    """Update node metadata; deactivating a node fails its open sessions."""
    registry = NodeRegistry(db)
    node = registry.get(node_id)
    if node is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Node not found",
        )
    if node.operator_address != current_user.wallet_address:
        raise ForbiddenError("Only the node operator may update this node")

    changes = payload.model_dump(exclude_unset=True)
    deactivate = changes.get("is_active") is False and node.is_active
    if deactivate:
        changes.pop("is_active")

    try:
        registry.update(node, changes)
    except ValueError as err:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(err),
        ) from err

    if deactivate:
        lifecycle.deactivate_node(node.id)
    else:
        db.commit()

    refreshed = registry.get(node_id)
    return NodeResponse.model_validate(refreshed)
