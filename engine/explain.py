#Purpose: Human-readable reasons for a score.
#Re-uses the scorer's per-term contributions (never recomputes the model on its own),
#attaches a fixed reason string per term and keeps the terms that moved the
#score the most, in either direction.

from typing import List

from .models import CellFeatures
from .policy import Weights
from .scoring import adjust_weights_for_weather, score_contributions

# travel reason flips to "nearby" at or under this distance
NEARBY_KM = 2.0

REASON_INTERNAL = "Riwayat jam ini bagus"
REASON_RECENCY = "Aktivitas terbaru mendukung"
REASON_POI = "POI padat di sekitar"
REASON_NEARBY = "Dekat dari posisi sekarang"
REASON_TRAVEL_COST = "Biaya pindah lumayan"
REASON_RAIN_HEAVY = "Risiko hujan tinggi (lebih baik indoor)"
REASON_RAIN_OK = "Cuaca relatif aman"


def explain(features: CellFeatures, weights: Weights, top_n: int = 3) -> List[str]:
    """
    Return up to top_n reasons ordered by absolute contribution, largest first.
    """
    contributions = score_contributions(features, weights)
    rain_heavy = adjust_weights_for_weather(weights, features.rain_risk_next_3h).rain_heavy

    reasons = {
        "internal": REASON_INTERNAL,
        "recency": REASON_RECENCY,
        "poi": REASON_POI,
        "travel": REASON_NEARBY if features.travel_km <= NEARBY_KM else REASON_TRAVEL_COST,
        "rain": REASON_RAIN_HEAVY if rain_heavy else REASON_RAIN_OK,
    }

    ranked = sorted(contributions.items(), key=lambda item: abs(item[1]), reverse=True)
    return [reasons[key] for key, _ in ranked[:top_n]]
