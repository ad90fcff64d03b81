from .staff import Staff, STAFF_ROLES
from .patient import Patient
from .treatment import Treatment, DOSAGE_UNITS
from .consent import ConsentTemplate, ConsentForm
from .package import Package, PackagePayment
from .visit import Visit, VisitTreatment
from .stock import StockItem, TreatmentConsumable, VisitConsumable
from .appointment import Appointment, APPOINTMENT_STATUSES

__all__ = [
    "Staff",
    "STAFF_ROLES",
    "Patient",
    "Treatment",
    "DOSAGE_UNITS",
    "ConsentTemplate",
    "ConsentForm",
    "Package",
    "PackagePayment",
    "Visit",
    "VisitTreatment",
    "StockItem",
    "TreatmentConsumable",
    "VisitConsumable",
    "Appointment",
    "APPOINTMENT_STATUSES",
]
