# Services Package
from .audit_service import AuditService, audit_service
from .auth_service import AuthContext, AuthService, auth_service, get_auth_context, require_roles
from .news2_calculator import News2Calculator, News2Result, RiskLevel, news2_calculator
from .drug_interaction_database import (
    DrugInteraction, DrugInteractionDatabase, InteractionSeverity,
    get_interaction_database, triggers_alert
)
from .clinical_alert_service import ClinicalAlertService, clinical_alert_service
from .drug_interaction_service import DrugInteractionService, drug_interaction_service
from .news2_service import News2Service, news2_service
from .lab_alert_service import LabAlertService, LabResultInterpretation, lab_alert_service
from .patient_risk_dashboard_service import PatientRiskDashboardService, patient_risk_dashboard_service

__all__ = [
    'AuditService',
    'audit_service',
    'AuthContext',
    'AuthService',
    'auth_service',
    'get_auth_context',
    'require_roles',
    'News2Calculator',
    'News2Result',
    'RiskLevel',
    'news2_calculator',
    'DrugInteraction',
    'DrugInteractionDatabase',
    'InteractionSeverity',
    'get_interaction_database',
    'triggers_alert',
    'ClinicalAlertService',
    'clinical_alert_service',
    'DrugInteractionService',
    'drug_interaction_service',
    'News2Service',
    'news2_service',
    'LabAlertService',
    'LabResultInterpretation',
    'lab_alert_service',
    'PatientRiskDashboardService',
    'patient_risk_dashboard_service',
]
