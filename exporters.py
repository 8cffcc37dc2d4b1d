# exporters.py
import json
from dataclasses import asdict
from datetime import date

import numpy as np
import pandas as pd

CURVE_HEADERS = {
    "year": "Year",
    "average": "Average Market",
    "below_average": "Below Average",
    "downturn": "Significant Downturn",
}


def export_percentile_curve(result, today: date = None) -> tuple[str, bytes]:
    df = result.to_frame()[list(CURVE_HEADERS)].rename(columns=CURVE_HEADERS)
    stamp = (today or date.today()).isoformat()
    return f"retirement_simulation_{stamp}.csv", df.to_csv(index=False, float_format="%.2f").encode()


def audit_frame(rows) -> pd.DataFrame:
    return pd.DataFrame([asdict(r) for r in rows])


def export_audit_log(rows, band: str) -> tuple[str, bytes]:
    df = audit_frame(rows)
    return f"audit_{band}.csv", df.to_csv(index=False, float_format="%.4f").encode()


def _json_default(o):
    # Handle numpy arrays & scalars cleanly for JSON
    if isinstance(o, np.ndarray):
        return o.tolist()
    if isinstance(o, np.generic):
        return o.item()
    # Let json raise for anything else unexpected
    raise TypeError(f"Object of type {o.__class__.__name__} is not JSON serializable")


def export_request(request) -> tuple[str, bytes]:
    blob = json.dumps(request.to_dict(), indent=2, default=_json_default)
    return "request.json", blob.encode()
