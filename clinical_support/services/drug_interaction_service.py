"""
Drug Interaction Service - Safety checks and interaction analysis

Checks a proposed drug against a patient's active medications and recorded
allergies, and summarises the interaction risk of the current medication list.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from itertools import combinations
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from clinical_support.database.models import (
    AlertSeverity, AlertType, MedicationStatus, Patient, PatientAllergy,
    PatientMedication, UserRole
)
from clinical_support.exceptions import InvalidInputError, NotFoundError
from clinical_support.services.audit_service import AuditService, audit_service
from clinical_support.services.auth_service import (
    AuthContext, PRESCRIBER_ROLES, require_roles
)
from clinical_support.services.clinical_alert_service import (
    ClinicalAlertService, clinical_alert_service
)
from clinical_support.services.drug_interaction_database import (
    DrugInteraction, DrugInteractionDatabase, get_interaction_database,
    normalise, pair_key, triggers_alert
)

logger = logging.getLogger(__name__)

SUMMARY_ROLES = (UserRole.DOCTOR, UserRole.NURSE, UserRole.ADMIN)
ALERT_SOURCE = "DrugInteractionService"

# Allergy class -> drugs that cross-react with it
CROSS_CLASS_ALLERGY_MAP = {
    "penicillin": frozenset({
        "amoxicillin", "ampicillin", "amoxicillin/clavulanate", "piperacillin",
        "flucloxacillin", "dicloxacillin", "phenoxymethylpenicillin", "benzylpenicillin",
    }),
    "sulfa": frozenset({
        "sulfamethoxazole", "sulfadiazine", "sulfasalazine",
        "trimethoprim/sulfamethoxazole", "co-trimoxazole",
    }),
    "cephalosporin": frozenset({
        "cefalexin", "cefuroxime", "ceftriaxone", "cefotaxime", "ceftazidime", "cefixime",
    }),
    "codeine": frozenset({
        "morphine", "tramadol", "oxycodone", "hydrocodone", "fentanyl", "buprenorphine",
    }),
}


def is_allergy_contraindicated(drug: str, allergy_substance: str) -> bool:
    """
    True when the drug matches the allergy by name in either direction,
    or belongs to a drug class the allergy substance names.
    """
    drug = normalise(drug)
    allergy = normalise(allergy_substance)
    if not drug or not allergy:
        return False

    if drug in allergy or allergy in drug:
        return True

    for allergy_class, drugs in CROSS_CLASS_ALLERGY_MAP.items():
        if allergy_class in allergy and drug in drugs:
            return True
    return False


@dataclass
class InteractionCheckResult:
    """Outcome of checking one proposed drug for a patient"""
    drug_name: str
    interactions: List[DrugInteraction] = field(default_factory=list)
    allergy_contraindications: List[str] = field(default_factory=list)
    safe: bool = True
    checked_at: datetime = None
    alert_id: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'drug_name': self.drug_name,
            'interactions': [i.to_dict() for i in self.interactions],
            'allergy_contraindications': self.allergy_contraindications,
            'safe': self.safe,
            'checked_at': self.checked_at.isoformat() if self.checked_at else None,
            'alert_id': self.alert_id,
        }


@dataclass
class InteractionSummary:
    """Interaction risk across a patient's current medication list"""
    patient_id: str
    active_medications: List[str] = field(default_factory=list)
    interactions: List[DrugInteraction] = field(default_factory=list)
    allergy_contraindications: List[str] = field(default_factory=list)
    safe: bool = True
    checked_at: datetime = None

    def to_dict(self) -> Dict:
        return {
            'patient_id': self.patient_id,
            'active_medications': self.active_medications,
            'interactions': [i.to_dict() for i in self.interactions],
            'allergy_contraindications': self.allergy_contraindications,
            'safe': self.safe,
            'checked_at': self.checked_at.isoformat() if self.checked_at else None,
        }


class DrugInteractionService:
    """
    Drug safety checking against the curated interaction table.

    The interaction database is injected; by default the process-wide
    instance from get_interaction_database() is used.
    """

    def __init__(
        self,
        interaction_db: DrugInteractionDatabase = None,
        alert_service: ClinicalAlertService = None,
        audit: AuditService = None
    ):
        self.interaction_db = interaction_db or get_interaction_database()
        self.alert_service = alert_service or clinical_alert_service
        self.audit = audit or audit_service

    def check_interaction(
        self,
        db: Session,
        ctx: AuthContext,
        patient_id: str,
        drug_name: str
    ) -> InteractionCheckResult:
        """
        Check a proposed drug against the patient's active medications and
        allergies. Raises one CRITICAL alert when the drug is unsafe.
        """
        require_roles(ctx, *PRESCRIBER_ROLES)

        if drug_name is None or not drug_name.strip():
            raise InvalidInputError("drug_name is required")
        drug_name = drug_name.strip()

        self._require_patient(db, patient_id)
        medications = self._active_medications(db, patient_id)
        allergies = self._active_allergies(db, patient_id)

        interactions = []
        for med in medications:
            interaction = self.interaction_db.find_interaction(drug_name, med.medication_name)
            if interaction is not None:
                interactions.append(interaction)

        contraindications = [
            f"Allergy to {allergy.substance} (cross-reaction with {drug_name})"
            for allergy in allergies
            if is_allergy_contraindicated(drug_name, allergy.substance)
        ]

        safe = not interactions and not contraindications
        serious = [i for i in interactions if triggers_alert(i.severity)]

        alert_id = None
        if serious or contraindications:
            alert_type = (
                AlertType.ALLERGY_CONTRAINDICATION if contraindications
                else AlertType.DRUG_INTERACTION
            )
            description = (
                f"Drug safety check for {drug_name}: "
                f"{len(serious)} major/contraindicated interaction(s) detected. "
                f"{len(contraindications)} allergy contraindication(s) detected."
            )
            alert = self.alert_service.create_alert(
                db,
                patient_id=patient_id,
                alert_type=alert_type,
                severity=AlertSeverity.CRITICAL,
                title=f"Drug Safety Alert: {drug_name}",
                description=description,
                source=ALERT_SOURCE,
                trigger_value=drug_name,
                actor=ctx.username,
            )
            alert_id = alert.id

        details = f"drug={drug_name} safe={safe}"
        if alert_id is not None:
            details += f" alert={alert_id}"
        self.audit.write(
            db, "CHECK", "DRUG_INTERACTION_CHECK", patient_id, patient_id, ctx.username, details
        )
        db.commit()

        if safe:
            logger.info(f"Drug check for patient {patient_id}: {drug_name} is safe")
        else:
            logger.warning(
                f"Drug check for patient {patient_id}: {drug_name} has "
                f"{len(interactions)} interaction(s), {len(contraindications)} allergy match(es)"
            )

        return InteractionCheckResult(
            drug_name=drug_name,
            interactions=interactions,
            allergy_contraindications=contraindications,
            safe=safe,
            checked_at=datetime.utcnow(),
            alert_id=alert_id,
        )

    def get_interaction_summary(
        self,
        db: Session,
        ctx: AuthContext,
        patient_id: str
    ) -> InteractionSummary:
        """Read-only review of the patient's current medication list"""
        require_roles(ctx, *SUMMARY_ROLES)

        self._require_patient(db, patient_id)
        medications = self._active_medications(db, patient_id)
        allergies = self._active_allergies(db, patient_id)

        names = []
        seen = set()
        for med in medications:
            key = normalise(med.medication_name)
            if key and key not in seen:
                seen.add(key)
                names.append(med.medication_name)

        interactions = []
        found = set()
        for drug_a, drug_b in combinations(names, 2):
            key = pair_key(drug_a, drug_b)
            if key in found:
                continue
            interaction = self.interaction_db.find_interaction(drug_a, drug_b)
            if interaction is not None:
                found.add(key)
                interactions.append(interaction)

        contraindications = [
            f"Patient allergic to {allergy.substance}: cross-reaction risk with {med.medication_name}"
            for med in medications
            for allergy in allergies
            if is_allergy_contraindicated(med.medication_name, allergy.substance)
        ]

        safe = not any(triggers_alert(i.severity) for i in interactions) and not contraindications

        return InteractionSummary(
            patient_id=patient_id,
            active_medications=names,
            interactions=interactions,
            allergy_contraindications=contraindications,
            safe=safe,
            checked_at=datetime.utcnow(),
        )

    @staticmethod
    def _require_patient(db: Session, patient_id: str) -> Patient:
        patient = db.query(Patient).filter(Patient.patient_uid == patient_id).first()
        if patient is None:
            raise NotFoundError(f"Patient not found: {patient_id}")
        return patient

    @staticmethod
    def _active_medications(db: Session, patient_id: str) -> List[PatientMedication]:
        return db.query(PatientMedication).filter(
            PatientMedication.patient_id == patient_id,
            PatientMedication.status == MedicationStatus.ACTIVE
        ).order_by(PatientMedication.id).all()

    @staticmethod
    def _active_allergies(db: Session, patient_id: str) -> List[PatientAllergy]:
        return db.query(PatientAllergy).filter(
            PatientAllergy.patient_id == patient_id,
            PatientAllergy.active == True  # noqa: E712
        ).order_by(PatientAllergy.id).all()


drug_interaction_service = DrugInteractionService()
