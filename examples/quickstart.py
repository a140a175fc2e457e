"""orbwatch quickstart: parse TLEs, propagate, screen, and merge with a feed."""

from datetime import timedelta

from orbwatch import (
    FeedClient,
    ScreeningConfig,
    detect_conjunctions,
    merge_events,
    parse_tle,
    propagate,
    risk_color,
)

tle_text = """
ISS (ZARYA)
1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9993
2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439596
COSMOS 1408 DEB
1 51087U 82092HY  24045.40000000  .00013000  00000-0  73000-3 0  9999
2 51087  82.5600 120.3400 0050000 200.0000 160.0000 15.15000000 50000
""".strip()

objects = parse_tle(tle_text)
iss = objects[0]

print(f"Satellite: {iss.name} ({iss.kind.value})")
print(f"Catalog:   {iss.catalog_id}")
print(f"Epoch:     {iss.epoch}")
print(f"Period:    {iss.period_minutes:.1f} min")

state = propagate(iss, iss.epoch + timedelta(minutes=30))
print(f"Position:  {state.position_m / 1000.0} km")

satellites = [o for o in objects if o.kind.value == "active-satellite"]
debris = [o for o in objects if o.kind.value == "debris"]
local = detect_conjunctions(satellites, debris, iss.epoch, config=ScreeningConfig(horizon_hours=24.0))

external = FeedClient().fetch_socrates()
if not external.available:
    print(f"SOCRATES unavailable: {external.error.reason}")

for event in merge_events(local.events, external.events)[:10]:
    print(
        f"{str(event.risk_band):>8} {risk_color(event.risk_band)} | {event.tca:%Y-%m-%d %H:%M:%S} | "
        f"{event.object1.name} vs {event.object2.name} | {event.range_m:.0f} m | {event.provenance.value}"
    )
