from collections import Counter

from flask import render_template_string

RECENT_ROWS = 25
DEVICE_TYPES = ("Mobile", "Desktop", "Laptop", "Unknown")


# -----------------------------------------------------------------------------
# Aggregation
# -----------------------------------------------------------------------------
def top_value(visits, field):
    """
    Most frequent real value of a column, ignoring Unknown/empty.
    Ties go to the value seen first (i.e. the more recent one).
    """
    counts = Counter(
        v.get(field) for v in visits
        if v.get(field) and v.get(field) != "Unknown"
    )
    if not counts:
        return "-"
    return counts.most_common(1)[0][0]


def average_duration(visits) -> float:
    durations = [v.get("duration") or 0 for v in visits]
    durations = [d for d in durations if d]
    if not durations:
        return 0
    return round(sum(durations) / len(durations), 1)


def visits_per_day(visits):
    """
    [(day, count), ...] ascending, keyed on the server-side created_at.
    """
    per_day = Counter((v.get("created_at") or "")[:10] for v in visits)
    per_day.pop("", None)
    return sorted(per_day.items())


def summarize(visits) -> dict:
    """
    Dashboard figures from a newest-first list of visit rows.
    """
    devices = Counter(v.get("device_type") or "Unknown" for v in visits)
    return {
        "total_visits": len(visits),
        "unique_visitors": len({v.get("visitor_id") for v in visits}),
        "devices": {name: devices.get(name, 0) for name in DEVICE_TYPES},
        "top_country": top_value(visits, "country"),
        "top_city": top_value(visits, "city"),
        "top_language": top_value(visits, "language"),
        "avg_duration": average_duration(visits),
        "recent": visits[:RECENT_ROWS],
        "per_day": visits_per_day(visits),
    }


# -----------------------------------------------------------------------------
# Sparkline builder (inline SVG chart)
# -----------------------------------------------------------------------------
def build_sparkline(points, width=320, height=60, stroke="#38bdf8"):
    """
    points: list[(day_string, count)], ascending by day.
    """
    head = (
        f'<svg width="{width}" height="{height}" viewBox="0 0 {width} {height}" '
        f'fill="none" stroke="{stroke}" stroke-width="2" stroke-linecap="round">'
    )
    if not points:
        return {"svg": head + "</svg>", "last_count": 0}

    counts = [p[1] for p in points]
    low = min(counts)
    span = (max(counts) - low) or 1

    n = len(points)
    xs = [width / 2] if n == 1 else [i * (width / (n - 1)) for i in range(n)]
    ys = [height - ((c - low) / span) * (height - 4) - 2 for c in counts]

    d_attr = " ".join(
        f"{'M' if i == 0 else 'L'}{x:.1f},{y:.1f}"
        for i, (x, y) in enumerate(zip(xs, ys))
    )
    return {"svg": f'{head}<path d="{d_attr}" /></svg>', "last_count": counts[-1]}


# -----------------------------------------------------------------------------
# Page
# -----------------------------------------------------------------------------
DASHBOARD_HTML = """
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8"/>
<meta name="viewport" content="width=device-width,initial-scale=1"/>
<title>visitlog dashboard</title>
<style>
body{font-family:system-ui,-apple-system,"Segoe UI",Roboto,sans-serif;background:#0f172a;color:#f8fafc;margin:0;padding:2rem}
h1{font-size:1.2rem;margin:0 0 .3rem}
.dim{color:#94a3b8;font-size:.8rem}
.error{background:#7f1d1d;border-radius:.75rem;padding:1rem;margin:1.5rem 0}
.cards{display:grid;grid-template-columns:repeat(auto-fit,minmax(170px,1fr));gap:1rem;margin:1.5rem 0}
.card{background:#1e293b;border-radius:.75rem;padding:1rem 1.25rem}
.label{font-size:.7rem;color:#94a3b8;text-transform:uppercase;letter-spacing:.03em}
.value{font-size:1.4rem;font-weight:600;margin-top:.3rem;word-break:break-word}
table{width:100%;border-collapse:collapse;font-size:.8rem}
th{text-align:left;color:#e2e8f0;border-bottom:1px solid #475569;padding:.5rem .25rem}
td{border-bottom:1px solid #334155;padding:.45rem .25rem;color:#cbd5e1;word-break:break-word}
td.num{text-align:right;white-space:nowrap}
</style>
</head>
<body>
<h1>Visits</h1>
<div class="dim">Last {{ limit }} recorded visits · storage {{ "ok" if not error else "unavailable" }}</div>

{% if error %}
<div class="error">Could not load visits: {{ error }}</div>
{% else %}
<section class="cards">
  <div class="card"><div class="label">Visits</div><div class="value">{{ s.total_visits }}</div></div>
  <div class="card"><div class="label">Unique visitors</div><div class="value">{{ s.unique_visitors }}</div></div>
  <div class="card"><div class="label">Top country</div><div class="value">{{ s.top_country }}</div></div>
  <div class="card"><div class="label">Top city</div><div class="value">{{ s.top_city }}</div></div>
  <div class="card"><div class="label">Top language</div><div class="value">{{ s.top_language }}</div></div>
  <div class="card"><div class="label">Avg duration (s)</div><div class="value">{{ s.avg_duration }}</div></div>
  <div class="card">
    <div class="label">Per day</div>
    {{ spark.svg | safe }}
    <div class="dim">latest day: {{ spark.last_count }}</div>
  </div>
</section>

<section class="card" style="margin-bottom:1.5rem">
  <table>
    <tr><th>Device</th><th class="num">Visits</th></tr>
    {% for name, count in s.devices.items() %}
    <tr><td>{{ name }}</td><td class="num">{{ count }}</td></tr>
    {% endfor %}
  </table>
</section>

<section class="card">
  <table>
    <tr><th>When</th><th>Visitor</th><th>Path</th><th>Device</th><th>Country</th><th>City</th><th>Language</th><th class="num">Duration</th></tr>
    {% for v in s.recent %}
    <tr>
      <td>{{ v.timestamp }}</td>
      <td>{{ v.visitor_id }}</td>
      <td>{{ v.path or v.url }}</td>
      <td>{{ v.device_type }}</td>
      <td>{{ v.country }}</td>
      <td>{{ v.city }}</td>
      <td>{{ v.language }}</td>
      <td class="num">{{ v.duration }}</td>
    </tr>
    {% else %}
    <tr><td colspan="8" class="dim">No visits yet.</td></tr>
    {% endfor %}
  </table>
</section>
{% endif %}
</body>
</html>
"""


def render_dashboard(visits, limit, error=None):
    summary = summarize(visits or [])
    return render_template_string(
        DASHBOARD_HTML,
        s=summary,
        spark=build_sparkline(summary["per_day"]),
        limit=limit,
        error=error,
    )
