"""
NEWS2 Calculator - NHS National Early Warning Score 2

Scoring tables follow the Royal College of Physicians NEWS2 clinical guide
(2017), SpO2 scale 1. Consciousness is not captured by the vitals workflow,
so it is always scored as ALERT (0).
"""
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from decimal import Decimal
from enum import Enum
from numbers import Real
from typing import Any, Dict, List, Optional, Union

from clinical_support.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal]


class RiskLevel(str, Enum):
    NO_DATA = "NO_DATA"
    LOW = "LOW"
    LOW_MEDIUM = "LOW_MEDIUM"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


RISK_COLOURS = {
    RiskLevel.LOW: "green",
    RiskLevel.LOW_MEDIUM: "yellow",
    RiskLevel.MEDIUM: "orange",
    RiskLevel.HIGH: "red",
}

RECOMMENDATIONS = {
    RiskLevel.LOW: "Routine ward monitoring",
    RiskLevel.LOW_MEDIUM: "Monitoring every 4-6 hours",
    RiskLevel.MEDIUM: "Urgent review within 1 hour",
    RiskLevel.HIGH: "Emergency clinical assessment required immediately",
}

NO_VITALS_MESSAGE = "No vitals on record"


@dataclass
class VitalsSnapshot:
    """A single set of observations. PatientVitals rows expose the same attributes."""
    id: Optional[int] = None
    respiratory_rate: Optional[Number] = None
    oxygen_saturation: Optional[Number] = None
    blood_pressure_systolic: Optional[Number] = None
    heart_rate: Optional[Number] = None
    temperature: Optional[Number] = None


@dataclass
class News2ComponentScore:
    """Scored contribution of a single NEWS2 parameter"""
    parameter: str
    value: Any
    score: int
    unit: Optional[str]
    defaulted: bool


@dataclass
class News2Result:
    """Computed NEWS2 score; total_score is None only for NO_DATA"""
    total_score: Optional[int]
    risk_level: RiskLevel
    risk_colour: Optional[str]
    recommendation: Optional[str]
    components: List[News2ComponentScore] = field(default_factory=list)
    based_on_vitals_id: Optional[int] = None
    computed_at: datetime = None
    message: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'total_score': self.total_score,
            'risk_level': self.risk_level.value,
            'risk_colour': self.risk_colour,
            'recommendation': self.recommendation,
            'components': [asdict(c) for c in self.components],
            'based_on_vitals_id': self.based_on_vitals_id,
            'computed_at': self.computed_at.isoformat() if self.computed_at else None,
            'message': self.message,
        }


# NHS scoring tables, bounds inclusive
def score_respiratory_rate(rr: float) -> int:
    if rr <= 8:
        return 3
    if rr <= 11:
        return 1
    if rr <= 20:
        return 0
    if rr <= 24:
        return 2
    return 3


def score_spo2(spo2: float) -> int:
    if spo2 <= 91:
        return 3
    if spo2 <= 93:
        return 2
    if spo2 <= 95:
        return 1
    return 0


def score_systolic_bp(sbp: float) -> int:
    if sbp <= 90:
        return 3
    if sbp <= 100:
        return 2
    if sbp <= 110:
        return 1
    if sbp <= 219:
        return 0
    return 3


def score_heart_rate(hr: float) -> int:
    if hr <= 40:
        return 3
    if hr <= 50:
        return 1
    if hr <= 90:
        return 0
    if hr <= 110:
        return 1
    if hr <= 130:
        return 2
    return 3


def score_temperature(temp: float) -> int:
    if temp <= 35.0:
        return 3
    if temp <= 36.0:
        return 1
    if temp <= 38.0:
        return 0
    if temp <= 39.0:
        return 1
    return 2


# (parameter, snapshot attribute, unit, scoring function)
PARAMETERS = (
    ("RESPIRATORY_RATE", "respiratory_rate", "breaths/min", score_respiratory_rate),
    ("SPO2", "oxygen_saturation", "%", score_spo2),
    ("SYSTOLIC_BP", "blood_pressure_systolic", "mmHg", score_systolic_bp),
    ("HEART_RATE", "heart_rate", "bpm", score_heart_rate),
    ("TEMPERATURE", "temperature", "°C", score_temperature),
)


def classify_risk(total: int, any_three: bool) -> RiskLevel:
    if total == 0:
        return RiskLevel.LOW
    if total <= 4:
        return RiskLevel.MEDIUM if any_three else RiskLevel.LOW_MEDIUM
    if total <= 6:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


class News2Calculator:
    """
    Stateless NEWS2 calculator.

    Safe to share between threads; compute() only reads its argument.
    """

    def compute(self, vitals) -> News2Result:
        """
        Compute a NEWS2 score from a vitals record.

        Args:
            vitals: VitalsSnapshot, PatientVitals row, or None

        Returns:
            News2Result; risk_level is NO_DATA when vitals is None
        """
        if vitals is None:
            return News2Result(
                total_score=None,
                risk_level=RiskLevel.NO_DATA,
                risk_colour=None,
                recommendation=None,
                components=[],
                based_on_vitals_id=None,
                computed_at=datetime.utcnow(),
                message=NO_VITALS_MESSAGE,
            )

        components = []
        total = 0
        any_three = False

        for parameter, attribute, unit, scorer in PARAMETERS:
            raw = getattr(vitals, attribute, None)
            if raw is None:
                components.append(News2ComponentScore(parameter, None, 0, unit, True))
                continue

            score = scorer(self._as_measurement(parameter, raw))
            components.append(News2ComponentScore(parameter, raw, score, unit, False))
            total += score
            any_three = any_three or score == 3

        components.append(News2ComponentScore("CONSCIOUSNESS", "ALERT", 0, None, True))

        risk_level = classify_risk(total, any_three)
        logger.debug(f"NEWS2 total={total} risk={risk_level.value} vitals_id={getattr(vitals, 'id', None)}")

        return News2Result(
            total_score=total,
            risk_level=risk_level,
            risk_colour=RISK_COLOURS[risk_level],
            recommendation=RECOMMENDATIONS[risk_level],
            components=components,
            based_on_vitals_id=getattr(vitals, 'id', None),
            computed_at=datetime.utcnow(),
        )

    @staticmethod
    def _as_measurement(parameter: str, raw) -> float:
        """Reject values that cannot be a physiological measurement"""
        if isinstance(raw, bool) or not isinstance(raw, (Real, Decimal)):
            raise InvalidInputError(f"{parameter} must be numeric, got {raw!r}")
        value = float(raw)
        if value != value or value < 0:
            raise InvalidInputError(f"{parameter} must be a non-negative number, got {raw!r}")
        return value


news2_calculator = News2Calculator()
