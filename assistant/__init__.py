#Expose the high-level driver assistant:
#"ngetem now" recommendations
#order start/finish with the weight update that closes the learning loop

from .service import NgetemAssistant, NgetemResult, DraftOrder

__all__ = [
    "NgetemAssistant",
    "NgetemResult",
    "DraftOrder",
]
