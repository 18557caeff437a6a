"""
Drug Interaction Database - static curated drug-drug interaction table

Clinically significant pairs covering anticoagulants, cardiac drugs,
CNS drugs, diabetes medications, antibiotics, respiratory medications,
NSAIDs and common OTC risks. Names are matched exactly after normalisation
(strip + lowercase); no prefix or fuzzy matching happens here.
"""
import logging
from dataclasses import dataclass, asdict
from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class InteractionSeverity(str, Enum):
    MINOR = "MINOR"
    MODERATE = "MODERATE"
    MAJOR = "MAJOR"
    CONTRAINDICATED = "CONTRAINDICATED"


# Severities that escalate to a CRITICAL clinical alert
ALERTING_SEVERITIES = frozenset({InteractionSeverity.MAJOR, InteractionSeverity.CONTRAINDICATED})


def triggers_alert(severity: InteractionSeverity) -> bool:
    return severity in ALERTING_SEVERITIES


@dataclass(frozen=True)
class DrugInteraction:
    """Drug interaction details"""
    drug1: str
    drug2: str
    severity: InteractionSeverity
    mechanism: str
    clinical_effect: str
    recommendation: str

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['severity'] = self.severity.value
        return data


def normalise(name: Optional[str]) -> str:
    return name.strip().lower() if name else ""


def pair_key(drug_a: str, drug_b: str) -> Tuple[str, str]:
    """Order-independent key for a drug pair"""
    return tuple(sorted((normalise(drug_a), normalise(drug_b))))


_S = InteractionSeverity

# (drug1, drug2, severity, mechanism, clinical effect, recommendation)
INTERACTION_TABLE = (
    # Anticoagulants
    ("warfarin", "ibuprofen", _S.MAJOR,
     "NSAID inhibits platelet aggregation and increases gastric bleeding risk; warfarin potentiated",
     "Significantly increased risk of serious bleeding",
     "Avoid combination; use paracetamol (acetaminophen) for analgesia if possible"),
    ("warfarin", "naproxen", _S.MAJOR,
     "NSAID inhibits platelet aggregation; warfarin anticoagulant effect potentiated",
     "Increased risk of GI and intracranial bleeding",
     "Avoid combination; monitor INR closely if unavoidable"),
    ("warfarin", "aspirin", _S.MAJOR,
     "Aspirin inhibits platelet aggregation and displaces warfarin from plasma proteins",
     "Significantly increased bleeding risk",
     "Use low-dose aspirin only when benefit clearly outweighs risk; monitor INR"),
    ("warfarin", "clopidogrel", _S.MAJOR,
     "Dual antiplatelet + anticoagulant combination",
     "Very high risk of major bleeding events",
     "Triple therapy (warfarin + aspirin + clopidogrel) requires specialist oversight"),
    ("warfarin", "amiodarone", _S.MAJOR,
     "Amiodarone inhibits CYP2C9 and CYP3A4, substantially increasing warfarin exposure",
     "INR can double or triple within days; severe bleeding risk",
     "Reduce warfarin dose by 30-50% and monitor INR twice weekly when starting amiodarone"),
    ("warfarin", "fluconazole", _S.MAJOR,
     "Fluconazole strongly inhibits CYP2C9 metabolism of warfarin",
     "INR markedly elevated; major bleeding risk",
     "Reduce warfarin dose; monitor INR closely during and after course"),
    ("warfarin", "metronidazole", _S.MAJOR,
     "Metronidazole inhibits CYP2C9, reducing warfarin clearance",
     "INR elevation and bleeding risk",
     "Monitor INR during metronidazole course; consider dose reduction"),
    ("warfarin", "diclofenac", _S.MAJOR,
     "NSAIDs inhibit platelet function and may increase warfarin levels",
     "Increased risk of GI and other bleeding",
     "Avoid if possible. Use acetaminophen for pain relief"),

    # Cardiac drugs
    ("digoxin", "amiodarone", _S.MAJOR,
     "Amiodarone inhibits P-glycoprotein and reduces renal clearance of digoxin",
     "Digoxin toxicity: bradycardia, heart block, nausea, visual disturbances",
     "Reduce digoxin dose by 50%; monitor serum digoxin levels and ECG"),
    ("digoxin", "verapamil", _S.MAJOR,
     "Verapamil inhibits P-glycoprotein-mediated elimination of digoxin",
     "Digoxin toxicity: bradycardia, AV block",
     "Reduce digoxin dose; monitor serum levels and heart rate"),
    ("digoxin", "spironolactone", _S.MODERATE,
     "Spironolactone may alter digoxin renal clearance and interfere with assay",
     "Risk of digoxin toxicity; spuriously elevated digoxin levels in some assays",
     "Monitor digoxin levels using assay unaffected by spironolactone"),
    ("lisinopril", "spironolactone", _S.MAJOR,
     "Both drugs reduce potassium excretion by different mechanisms",
     "Severe hyperkalaemia, potentially fatal cardiac arrhythmias",
     "Avoid unless heart failure protocol with careful K+ monitoring; start low dose"),
    ("ramipril", "spironolactone", _S.MAJOR,
     "ACE inhibitor + K-sparing diuretic: additive hyperkalaemia",
     "Life-threatening hyperkalaemia",
     "Monitor K+ closely; avoid combination unless clinically necessary"),
    ("losartan", "spironolactone", _S.MAJOR,
     "Both drugs increase potassium levels",
     "Potentially life-threatening hyperkalaemia",
     "Monitor potassium levels closely"),
    ("enalapril", "potassium", _S.MAJOR,
     "ACE inhibitor reduces aldosterone, increasing K+ retention",
     "Hyperkalaemia risk, especially with K+ supplements",
     "Monitor serum K+; avoid routine K+ supplementation"),
    ("atenolol", "verapamil", _S.MAJOR,
     "Additive negative chronotropic and dromotropic effects",
     "Severe bradycardia, AV block, or asystole",
     "Avoid combination; if necessary, use with telemetry monitoring"),
    ("amlodipine", "simvastatin", _S.MODERATE,
     "Amlodipine inhibits CYP3A4, increasing simvastatin exposure",
     "Increased risk of myopathy and rhabdomyolysis",
     "Do not exceed simvastatin 20mg daily; consider alternative statin"),

    # CNS / psychiatry
    ("ssri", "maoi", _S.CONTRAINDICATED,
     "Both drugs increase serotonergic neurotransmission by different mechanisms",
     "Serotonin syndrome: hyperthermia, rigidity, myoclonus, autonomic instability",
     "Contraindicated: allow 14-day washout after stopping MAOI before starting SSRI"),
    ("fluoxetine", "phenelzine", _S.CONTRAINDICATED,
     "Fluoxetine (SSRI) + phenelzine (MAOI): serotonin syndrome",
     "Life-threatening serotonin syndrome",
     "Contraindicated; 5-week washout after fluoxetine due to long half-life"),
    ("sertraline", "tramadol", _S.MAJOR,
     "Sertraline (SSRI) reduces CYP2D6 metabolism of tramadol; additive serotonergic effect",
     "Serotonin syndrome; seizures",
     "Avoid combination or use lowest effective doses with close monitoring"),
    ("fluoxetine", "tramadol", _S.MAJOR,
     "Fluoxetine inhibits CYP2D6, reducing tramadol conversion to active metabolite and increasing parent drug",
     "Serotonin syndrome risk; paradoxical reduced analgesia",
     "Avoid; use alternative analgesic"),
    ("escitalopram", "tramadol", _S.MAJOR,
     "Both drugs increase serotonin levels",
     "Agitation, hyperthermia, neuromuscular symptoms",
     "Avoid combination if possible"),
    ("ssri", "tramadol", _S.MAJOR,
     "Additive serotonergic effect; SSRI inhibits CYP2D6 metabolism of tramadol",
     "Serotonin syndrome; seizures",
     "Avoid; use non-serotonergic analgesic"),
    ("alprazolam", "tramadol", _S.MAJOR,
     "Additive CNS depressant effects",
     "Sedation, respiratory depression, coma, death",
     "Avoid combination. If necessary, use lowest doses and monitor"),
    ("lithium", "ibuprofen", _S.MAJOR,
     "NSAIDs reduce renal clearance of lithium",
     "Lithium toxicity: tremor, confusion, renal damage",
     "Avoid NSAIDs with lithium; use paracetamol (acetaminophen) instead"),
    ("lithium", "naproxen", _S.MAJOR,
     "NSAID reduces renal prostaglandin synthesis, decreasing lithium excretion",
     "Lithium toxicity",
     "Avoid; monitor lithium levels if NSAID unavoidable"),
    ("clozapine", "ciprofloxacin", _S.MAJOR,
     "Ciprofloxacin inhibits CYP1A2, the primary metabolic pathway for clozapine",
     "Clozapine toxicity: sedation, seizures, agranulocytosis risk",
     "Avoid or reduce clozapine dose by 50%; monitor closely"),

    # Diabetes
    ("metformin", "contrast", _S.MAJOR,
     "Iodinated contrast media cause transient renal impairment, reducing metformin clearance",
     "Lactic acidosis, potentially fatal",
     "Withhold metformin 48h before and after IV contrast; ensure renal function normal before restarting"),
    ("metformin", "alcohol", _S.MAJOR,
     "Alcohol potentiates metformin inhibition of hepatic gluconeogenesis",
     "Increased risk of lactic acidosis",
     "Avoid excessive alcohol use with metformin"),
    ("glibenclamide", "fluconazole", _S.MAJOR,
     "Fluconazole inhibits CYP2C9 metabolism of glibenclamide (glyburide)",
     "Severe prolonged hypoglycaemia",
     "Avoid combination; monitor blood glucose closely if unavoidable"),
    ("metformin", "furosemide", _S.MODERATE,
     "Competition for renal tubular transport",
     "Increased metformin concentration and effect",
     "Monitor blood glucose and for metformin side effects"),

    # Antibiotics
    ("ciprofloxacin", "antacids", _S.MODERATE,
     "Divalent cations (Al, Mg, Ca) chelate ciprofloxacin in gut lumen",
     "Reduced ciprofloxacin absorption by up to 85%; treatment failure",
     "Separate administration by at least 2 hours (ciprofloxacin first)"),
    ("ciprofloxacin", "theophylline", _S.MAJOR,
     "Ciprofloxacin inhibits CYP1A2, the primary metabolic pathway for theophylline",
     "Theophylline toxicity: tachycardia, seizures, arrhythmias, hypokalaemia",
     "Reduce theophylline dose by 50% when starting ciprofloxacin; monitor serum levels"),
    ("metronidazole", "alcohol", _S.MAJOR,
     "Metronidazole inhibits aldehyde dehydrogenase (disulfiram-like reaction)",
     "Flushing, tachycardia, nausea, vomiting (disulfiram reaction)",
     "Avoid alcohol during treatment and 48h after completion"),
    ("trimethoprim", "methotrexate", _S.MAJOR,
     "Additive antifolate effect; trimethoprim inhibits dihydrofolate reductase",
     "Severe myelosuppression, megaloblastic anaemia",
     "Avoid combination or use with folinic acid supplementation under specialist guidance"),
    ("doxycycline", "antacids", _S.MODERATE,
     "Divalent cations chelate tetracyclines in gut",
     "Reduced absorption of doxycycline; treatment failure",
     "Take doxycycline 2 hours before or 6 hours after antacids"),
    ("rifampicin", "warfarin", _S.MAJOR,
     "Rifampicin is a potent CYP inducer; dramatically increases warfarin metabolism",
     "Markedly reduced anticoagulant effect; thrombosis risk",
     "Monitor INR very frequently; may need to double or triple warfarin dose"),
    ("rifampicin", "oral contraceptive", _S.MAJOR,
     "Rifampicin induces CYP3A4 and UGT enzymes, reducing oestrogen and progestogen levels",
     "Contraceptive failure; unintended pregnancy",
     "Use additional non-hormonal contraception during and 4 weeks after rifampicin"),
    ("simvastatin", "clarithromycin", _S.CONTRAINDICATED,
     "CYP3A4 inhibition dramatically increases simvastatin levels",
     "High risk of rhabdomyolysis",
     "Do not use together. Use alternative antibiotic"),

    # Respiratory
    ("theophylline", "erythromycin", _S.MAJOR,
     "Erythromycin inhibits CYP3A4 and CYP1A2, increasing theophylline levels",
     "Theophylline toxicity",
     "Use alternative antibiotic if possible; monitor levels closely"),

    # NSAIDs + ACE inhibitors / ARBs
    ("ibuprofen", "lisinopril", _S.MODERATE,
     "NSAIDs reduce renal prostaglandin synthesis; impair ACE inhibitor renal effects",
     "Reduced antihypertensive effect; risk of acute kidney injury",
     "Avoid regular NSAID use; monitor renal function and blood pressure"),
    ("ibuprofen", "ramipril", _S.MODERATE,
     "NSAID reduces ACE inhibitor efficacy and increases renal injury risk",
     "Blood pressure elevation; acute kidney injury in susceptible patients",
     "Use paracetamol instead; monitor renal function if unavoidable"),
    ("naproxen", "lisinopril", _S.MODERATE,
     "Same mechanism as ibuprofen/ACE inhibitor interaction",
     "Reduced antihypertensive efficacy; renal impairment",
     "Avoid; prefer alternative analgesic"),
    ("ibuprofen", "aspirin", _S.MODERATE,
     "Competitive inhibition of COX-1 platelet binding site",
     "Reduced antiplatelet effect of aspirin; increased GI bleeding risk",
     "Take aspirin 30 minutes before ibuprofen or use alternative analgesic"),

    # Antiplatelet / anticoagulant + others
    ("aspirin", "methotrexate", _S.MAJOR,
     "Aspirin (NSAID) reduces renal tubular secretion of methotrexate",
     "Methotrexate toxicity: severe myelosuppression, mucositis",
     "Avoid combination; if necessary, use with leucovorin rescue and frequent monitoring"),
    ("clopidogrel", "omeprazole", _S.MODERATE,
     "Omeprazole inhibits CYP2C19, reducing conversion of clopidogrel to active metabolite",
     "Reduced antiplatelet effect; possible increased cardiovascular events",
     "Use pantoprazole (lower CYP2C19 inhibition) as alternative PPI"),
    ("aspirin", "clopidogrel", _S.MODERATE,
     "Additive antiplatelet effects",
     "Increased bleeding risk, but often used intentionally for cardiac protection",
     "Often prescribed together intentionally. Monitor for bleeding"),

    # Additional clinically significant pairs
    ("simvastatin", "erythromycin", _S.MAJOR,
     "Erythromycin inhibits CYP3A4-mediated statin metabolism",
     "Severe myopathy and rhabdomyolysis",
     "Withhold simvastatin during course of erythromycin; use azithromycin instead"),
    ("sildenafil", "nitrate", _S.CONTRAINDICATED,
     "Both drugs lower blood pressure via different mechanisms (cGMP pathway)",
     "Life-threatening hypotension",
     "Contraindicated; do not use together"),
    ("tacrolimus", "fluconazole", _S.MAJOR,
     "Fluconazole inhibits CYP3A4 and CYP2C19; tacrolimus levels increase greatly",
     "Tacrolimus toxicity: nephrotoxicity, neurotoxicity, QT prolongation",
     "Reduce tacrolimus dose by 50%; monitor levels closely"),
    ("levothyroxine", "calcium", _S.MODERATE,
     "Calcium binds levothyroxine in GI tract",
     "Reduced thyroid hormone levels, hypothyroid symptoms",
     "Separate administration by 4 hours"),
    ("paracetamol", "metoclopramide", _S.MINOR,
     "Metoclopramide accelerates gastric emptying and paracetamol absorption",
     "Faster onset and higher peak paracetamol concentration",
     "No action usually needed"),
)


class DrugInteractionDatabase:
    """
    Read-only drug interaction lookup.

    Built once per process and shared by reference; the underlying mapping is
    immutable, so concurrent readers need no locking.
    """

    def __init__(self, table=INTERACTION_TABLE):
        interactions = {}
        for drug1, drug2, severity, mechanism, clinical_effect, recommendation in table:
            key = pair_key(drug1, drug2)
            if key in interactions:
                logger.warning(f"Duplicate interaction entry for {key}; keeping the later one")
            interactions[key] = DrugInteraction(
                drug1=normalise(drug1),
                drug2=normalise(drug2),
                severity=severity,
                mechanism=mechanism,
                clinical_effect=clinical_effect,
                recommendation=recommendation,
            )
        self._interactions = MappingProxyType(interactions)
        logger.info(f"Drug interaction database loaded with {len(interactions)} pairs")

    def find_interaction(self, drug_a: str, drug_b: str) -> Optional[DrugInteraction]:
        """Interaction between exactly two drugs, in either order"""
        return self._interactions.get(pair_key(drug_a, drug_b))

    def find_interactions_for(self, drug_name: str) -> List[DrugInteraction]:
        """All interactions where the drug appears on either side"""
        name = normalise(drug_name)
        if not name:
            return []
        return [
            interaction for key, interaction in self._interactions.items()
            if name in key
        ]

    def size(self) -> int:
        return len(self._interactions)

    def __len__(self) -> int:
        return self.size()


@lru_cache()
def get_interaction_database() -> DrugInteractionDatabase:
    """Process-wide interaction database, loaded on first use"""
    return DrugInteractionDatabase()
