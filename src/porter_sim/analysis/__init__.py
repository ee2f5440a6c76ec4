"""KPI extraction and analysis for porter-sim runs."""

from porter_sim.analysis.kpis import DispatchKPIs, compute_all_kpis, compute_dispatch_kpis

__all__ = [
    "DispatchKPIs",
    "compute_dispatch_kpis",
    "compute_all_kpis",
]
