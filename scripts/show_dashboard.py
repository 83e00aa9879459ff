"""
Print the dashboard cards and first table page to the terminal.
Run:
    python scripts/show_dashboard.py [start] [end] [min_humidity] [max_humidity]
"""
import sys
import logging

from config import get_settings
from dashboard import DashboardClient, Filters

def main():
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    client = DashboardClient(settings.dashboard_api_url, page_size=settings.dashboard_page_size)
    if not client.refresh():
        sys.exit(1)
    client.set_filters(Filters.from_inputs(*sys.argv[1:5]))
    view = client.toggle_sort("timestamp")

    print(f"humidity mean={view.stats.mean} min={view.stats.min} max={view.stats.max}")
    if view.latest:
        print(f"latest: {view.latest.humidity}% at {view.latest.timestamp_iso}")
    print(f"page {view.page.page}/{view.page.pages} ({view.page.total} readings)")
    for r in view.page.items:
        flag = "irrigating" if r.regando else ""
        print(f"  {r.timestamp_iso or '-':26} {r.humidity:6.2f}  {flag}")

if __name__ == "__main__":
    main()
