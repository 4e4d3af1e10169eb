"""Per-screen phase state machines."""

from .base import PhaseContext, PhaseMachine, PhaseState, PhaseStatus
from .calibration import CalibrationPhase
from .identity import IdentityPhase
from .language import LanguagePhase
from .navigation import NavigationPhase
from .revision import RevisionPhase
from .terms import TermsPhase

# Screen name -> phase class
SCREENS = {
    LanguagePhase.screen: LanguagePhase,
    TermsPhase.screen: TermsPhase,
    IdentityPhase.screen: IdentityPhase,
    CalibrationPhase.screen: CalibrationPhase,
    NavigationPhase.screen: NavigationPhase,
    RevisionPhase.screen: RevisionPhase,
}

__all__ = [
    "SCREENS",
    "PhaseContext",
    "PhaseMachine",
    "PhaseState",
    "PhaseStatus",
    "LanguagePhase",
    "TermsPhase",
    "IdentityPhase",
    "CalibrationPhase",
    "NavigationPhase",
    "RevisionPhase",
]
