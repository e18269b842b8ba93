"""Donation/request posts and their lifecycle transitions."""
from fastapi import APIRouter, Depends

from foodshare.dependencies import get_current_user, get_post_workflow
from foodshare.models.user import User
from foodshare.repositories.posts import PostPatch
from foodshare.schemas.post import PostCreate, PostResponse, PostUpdate
from foodshare.services.lifecycle import PostWorkflow

router = APIRouter(prefix="/posts", tags=["posts"])


@router.post("/", response_model=PostResponse, status_code=201)
def create_post(
    data: PostCreate,
    workflow: PostWorkflow = Depends(get_post_workflow),
    current_user: User = Depends(get_current_user),
):
    post = workflow.create_post(
        owner_id=current_user.id,
        type=data.type,
        title=data.title,
        description=data.description,
        quantity=data.quantity,
        location=data.location,
        expiry_date=data.expiry_date,
        urgency=data.urgency,
    )
    return PostResponse.model_validate(post)


@router.get("/{post_id}", response_model=PostResponse)
def get_post(post_id: str, workflow: PostWorkflow = Depends(get_post_workflow)):
    return PostResponse.model_validate(workflow.get_post(post_id))


@router.patch("/{post_id}", response_model=PostResponse)
def update_post(
    post_id: str,
    data: PostUpdate,
    workflow: PostWorkflow = Depends(get_post_workflow),
    current_user: User = Depends(get_current_user),
):
    patch = PostPatch(**data.model_dump(exclude_unset=True))
    return PostResponse.model_validate(workflow.update_post(post_id, current_user.id, patch))


@router.delete("/{post_id}", status_code=204)
def delete_post(
    post_id: str,
    workflow: PostWorkflow = Depends(get_post_workflow),
    current_user: User = Depends(get_current_user),
):
    workflow.delete(post_id, current_user.id)


@router.post("/{post_id}/claim", response_model=PostResponse)
def claim_donation(
    post_id: str,
    workflow: PostWorkflow = Depends(get_post_workflow),
    current_user: User = Depends(get_current_user),
):
    return PostResponse.model_validate(workflow.claim(post_id, current_user.id))


@router.post("/{post_id}/fulfill", response_model=PostResponse)
def fulfill_request(
    post_id: str,
    workflow: PostWorkflow = Depends(get_post_workflow),
    current_user: User = Depends(get_current_user),
):
    return PostResponse.model_validate(workflow.fulfill(post_id, current_user.id))


@router.post("/{post_id}/picked-up", response_model=PostResponse)
def mark_picked_up(
    post_id: str,
    workflow: PostWorkflow = Depends(get_post_workflow),
    current_user: User = Depends(get_current_user),
):
    return PostResponse.model_validate(workflow.mark_picked_up(post_id, current_user.id))


@router.post("/{post_id}/complete", response_model=PostResponse)
def mark_completed(
    post_id: str,
    workflow: PostWorkflow = Depends(get_post_workflow),
    current_user: User = Depends(get_current_user),
):
    return PostResponse.model_validate(workflow.mark_completed(post_id, current_user.id))
