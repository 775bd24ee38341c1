"""Customer feedback and complaints, with the admin review queue."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import aliased
from sqlmodel import Session, select

from services.care_api.security import get_current_user, require_role
from shared.db import get_session
from shared.models import FeedbackComplaint, User, utcnow
from shared.types import FeedbackBody, FeedbackStatus, FeedbackStatusBody, Role

logger = logging.getLogger(__name__)

router = APIRouter(tags=["feedback"])

FEEDBACK_TYPES = ("feedback", "complaint")

# Display labels used by the forms, mapped to stored categories
CATEGORY_MAP = {
    "General Feedback": "other",
    "Service Quality": "service",
    "Staff Behavior": "staff",
    "Facility Cleanliness": "facility",
    "Wait Time": "service",
    "Treatment Quality": "doctor",
    "Reception": "service",
    "Nursing": "staff",
    "Doctors": "doctor",
    "Billing": "billing",
    "Pharmacy": "service",
    "Laboratory": "service",
    "Emergency": "service",
    "Administration": "other",
    "Service Issue": "service",
    "Billing Problem": "billing",
    "Staff Complaint": "staff",
    "Facility Issue": "facility",
    "Treatment Concern": "doctor",
    "Other": "other",
}
CATEGORIES = {"service", "facility", "staff", "doctor", "billing", "other"}

PRIORITY_MAP = {
    "Low": "low",
    "Medium": "normal",
    "High": "high",
    "Urgent": "urgent",
}
PRIORITIES = {"low", "normal", "high", "urgent"}


def map_category(label: str) -> str:
    if label in CATEGORIES:
        return label
    return CATEGORY_MAP.get(label, "other")


def map_priority(label: str) -> str:
    if label in PRIORITIES:
        return label
    return PRIORITY_MAP.get(label, "normal")


@router.post("/api/feedback", status_code=201)
def create_feedback(
    body: FeedbackBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if not all([body.type, body.subject, body.description]):
        raise HTTPException(status_code=400, detail="Type, subject, and description are required")
    if body.type not in FEEDBACK_TYPES:
        raise HTTPException(status_code=400, detail="Type must be either 'feedback' or 'complaint'")
    if body.rating is not None and not 1 <= body.rating <= 5:
        raise HTTPException(status_code=400, detail="Rating must be between 1 and 5")

    item = FeedbackComplaint(
        customer_user_id=user.id,
        type=body.type,
        subject=body.subject,
        description=body.description,
        category=map_category(body.category),
        priority=map_priority(body.priority),
        rating=body.rating,
    )
    session.add(item)
    session.commit()
    session.refresh(item)

    logger.info(f"{body.type} {item.id} submitted by user {user.id}")
    return {"message": f"{body.type} submitted successfully", "id": item.id}


@router.get("/api/feedback/my")
def list_my_feedback(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    rows = session.exec(
        select(FeedbackComplaint)
        .where(FeedbackComplaint.customer_user_id == user.id)
        .order_by(FeedbackComplaint.created_at.desc())
    ).all()
    feedback = [f.model_dump() for f in rows]
    return {"feedback": feedback, "total": len(feedback)}


@router.get("/api/admin/feedback")
def list_all_feedback(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, (Role.ADMIN.value,), "Access denied. Admin access required.")
    customer = aliased(User)
    reviewer = aliased(User)
    rows = session.exec(
        select(FeedbackComplaint, customer, reviewer.full_name)
        .join(customer, customer.id == FeedbackComplaint.customer_user_id)
        .join(reviewer, reviewer.id == FeedbackComplaint.admin_user_id, isouter=True)
        .order_by(FeedbackComplaint.created_at.desc())
    ).all()

    feedback = []
    for item, owner, admin_name in rows:
        data = item.model_dump()
        data.update(
            customer_name=owner.full_name,
            customer_email=owner.email,
            customer_phone=owner.phone,
            admin_name=admin_name,
        )
        feedback.append(data)
    return {"feedback": feedback, "total": len(feedback)}


@router.put("/api/admin/feedback/{feedback_id}/status")
def update_feedback_status(
    feedback_id: int,
    body: FeedbackStatusBody,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, (Role.ADMIN.value,), "Access denied. Admin access required.")
    try:
        status = FeedbackStatus(body.status)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail="Invalid status. Must be pending, in_review, resolved, or closed",
        )

    item = session.get(FeedbackComplaint, feedback_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Feedback/complaint not found")

    now = utcnow()
    item.status = status.value
    item.admin_response = body.admin_response or None
    item.admin_user_id = user.id
    item.updated_at = now
    if status == FeedbackStatus.RESOLVED:
        item.resolved_at = now
    session.add(item)
    session.commit()

    logger.info(f"Feedback {feedback_id} status updated to: {status.value}")
    return {"message": "Feedback status updated successfully", "status": status.value}


@router.get("/api/admin/feedback/stats")
def feedback_stats(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    require_role(user, (Role.ADMIN.value,), "Access denied. Admin access required.")
    rows = session.exec(
        select(FeedbackComplaint.type, FeedbackComplaint.status, func.count(FeedbackComplaint.id))
        .group_by(FeedbackComplaint.type, FeedbackComplaint.status)
    ).all()

    stats = {
        "total": 0,
        "feedback": {s.value: 0 for s in FeedbackStatus},
        "complaints": {s.value: 0 for s in FeedbackStatus},
    }
    for kind, status, count in rows:
        bucket = stats["feedback"] if kind == "feedback" else stats["complaints"]
        bucket[status] = count
        stats["total"] += count
    return stats
