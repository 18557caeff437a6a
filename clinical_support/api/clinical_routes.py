"""
Clinical Decision Support API Routes
NEWS2 scoring, drug safety checks and the clinical alert feeds
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from clinical_support.config import settings
from clinical_support.database.connection import get_db
from clinical_support.database.models import AlertSeverity, AlertStatus
from clinical_support.services.audit_service import audit_service
from clinical_support.services.auth_service import AuthContext, auth_service, get_auth_context
from clinical_support.services.clinical_alert_service import clinical_alert_service
from clinical_support.services.drug_interaction_service import drug_interaction_service
from clinical_support.services.news2_service import news2_service
from clinical_support.services.patient_risk_dashboard_service import patient_risk_dashboard_service


router = APIRouter(prefix="/api/clinical", tags=["Clinical Decision Support"])


# ==================== Pydantic Models ====================

class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


class InteractionCheckRequest(BaseModel):
    drug_name: str


class DismissRequest(BaseModel):
    reason: str


# ==================== Authentication ====================

@router.post("/auth/login", response_model=LoginResponse)
async def login(login_data: LoginRequest, db: Session = Depends(get_db)):
    """
    Login with username and password.
    Returns JWT token for subsequent requests.
    """
    user = auth_service.authenticate_user(db, login_data.username, login_data.password)

    if not user:
        audit_service.write(
            db, "LOGIN_FAILED", "AUTH", performed_by=login_data.username,
            details="Invalid username or password"
        )
        db.commit()
        raise HTTPException(status_code=401, detail="Invalid username or password")

    token = auth_service.create_access_token(
        data={"sub": user.username, "role": user.role.value}
    )

    audit_service.write(db, "LOGIN", "AUTH", entity_id=user.id, performed_by=user.username)
    db.commit()

    return {
        "access_token": token,
        "token_type": "bearer",
        "user": {
            "id": user.id,
            "username": user.username,
            "full_name": user.full_name,
            "role": user.role.value,
            "department": user.department,
        }
    }


# ==================== NEWS2 ====================

@router.get("/patients/{patient_id}/news2")
async def get_news2_score(
    patient_id: str,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    """
    NEWS2 score for the patient's most recent vitals.
    A MEDIUM or HIGH score raises a deterioration alert.
    """
    result = news2_service.get_news2_score(db, ctx, patient_id)
    return {"patient_id": patient_id, **result.to_dict()}


# ==================== Drug Safety ====================

@router.post("/patients/{patient_id}/interaction-check")
async def check_drug_interaction(
    patient_id: str,
    request: InteractionCheckRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    """Check a proposed drug against active medications and allergies"""
    result = drug_interaction_service.check_interaction(db, ctx, patient_id, request.drug_name)
    return {"patient_id": patient_id, **result.to_dict()}


@router.get("/patients/{patient_id}/interaction-summary")
async def get_interaction_summary(
    patient_id: str,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    """Interaction review of the patient's current medication list"""
    return drug_interaction_service.get_interaction_summary(db, ctx, patient_id).to_dict()


# ==================== Alerts ====================

@router.get("/patients/{patient_id}/alerts")
async def get_patient_alerts(
    patient_id: str,
    status: Optional[AlertStatus] = None,
    severity: Optional[AlertSeverity] = None,
    page: int = Query(0, ge=0),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    """Alerts for one patient, newest first"""
    return clinical_alert_service.get_patient_alerts(
        db, ctx, patient_id, status=status, severity=severity, page=page, size=size
    ).to_dict()


@router.get("/alerts")
async def get_alerts(
    status: Optional[AlertStatus] = None,
    severity: Optional[AlertSeverity] = None,
    page: int = Query(0, ge=0),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    """
    Alerts across patients, newest first.
    Doctors only see patients they have appointments with.
    """
    return clinical_alert_service.get_global_alerts(
        db, ctx, status=status, severity=severity, page=page, size=size
    ).to_dict()


@router.post("/alerts/{alert_id}/acknowledge")
async def acknowledge_alert(
    alert_id: str,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    """Acknowledge an active alert"""
    return clinical_alert_service.acknowledge(db, ctx, alert_id)


@router.post("/alerts/{alert_id}/dismiss")
async def dismiss_alert(
    alert_id: str,
    request: DismissRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    """Dismiss an active alert with a reason"""
    return clinical_alert_service.dismiss(db, ctx, alert_id, request.reason)


# ==================== Dashboard ====================

@router.get("/dashboard/stats")
async def get_dashboard_stats(
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    """Active alert counts for the clinical dashboard"""
    return clinical_alert_service.get_dashboard_stats(db, ctx).to_dict()


@router.get("/dashboard/patients")
async def get_risk_ranked_patients(
    page: int = Query(0, ge=0),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db)
):
    """
    Patients ranked by active critical alerts, NEWS2 score and warnings.
    Doctors only see patients they have appointments with.
    """
    return patient_risk_dashboard_service.get_risk_ranked_patients(
        db, ctx, page=page, size=size
    ).to_dict()
