# frontend/streamlit_app.py
# Run with: streamlit run frontend/streamlit_app.py
import os
from datetime import datetime, time as dt_time, timezone

import pandas as pd
import requests
import streamlit as st
from streamlit_autorefresh import st_autorefresh
from streamlit_folium import st_folium

from backend.app.errors import InvalidGeometry
from backend.app.flight_path import generate_flight_path
from backend.app.geometry import estimate_area, format_area
from frontend.map_view import (
    clicked_location,
    create_draw_map,
    drawn_polygon,
    monitoring_deck,
    preview_deck,
)

BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000")
WORKER_URL = os.getenv("WORKER_URL", "http://localhost:8001")
MISSION_POLL_SECONDS = int(os.getenv("MISSION_POLL_SECONDS", "30"))
SIM_TICK_SECONDS = float(os.getenv("SIM_TICK_SECONDS", "1.0"))

PATTERNS = ["grid", "perimeter", "crosshatch"]

st.set_page_config(page_title="Drone Survey Management System", layout="wide")

# -------------------------------
# Sidebar Navigation
# -------------------------------
st.sidebar.title("📊 Menu")
page = st.sidebar.radio(
    "Choose a Dashboard:",
    [
        "🛰 Mission Planner",
        "🚁 Fleet Visualization",
        "📡 Mission Monitoring",
        "📊 Survey Reporting & Analytics Portal"
    ]
)

API = st.sidebar.text_input("API base URL", value=BACKEND_URL).rstrip("/")
WORKER = st.sidebar.text_input("Worker base URL", value=WORKER_URL).rstrip("/")


# -------------------------------
# Helper Functions
# -------------------------------
def get_data(endpoint, params=None):
    try:
        r = requests.get(f"{API}/{endpoint}", params=params, timeout=10)
        if not r.ok:
            st.warning(f"⚠️ Failed to fetch {endpoint}: {r.status_code}")
            return []
        return r.json()
    except requests.RequestException as e:
        st.error(f"Error fetching {endpoint}: {e}")
        return []


@st.cache_data(ttl=MISSION_POLL_SECONDS)
def poll_missions(api):
    """Mission list for the monitoring selector; refreshed on the long poll only."""
    try:
        r = requests.get(f"{api}/missions", timeout=10)
        return r.json() if r.ok else []
    except requests.RequestException:
        return []


def show_error(r):
    try:
        st.error(r.json().get("detail", r.text))
    except ValueError:
        st.error(r.text)


def delete_item(endpoint, item_id):
    try:
        r = requests.delete(f"{API}/{endpoint}/{item_id}", timeout=10)
        if r.ok:
            st.success("Deleted successfully")
            st.rerun()
        else:
            show_error(r)
    except requests.RequestException as e:
        st.error(f"Error deleting: {e}")


def set_status(mission_id, status):
    try:
        r = requests.patch(f"{API}/missions/{mission_id}", json={"status": status}, timeout=10)
        if r.ok:
            st.success(f"Mission {mission_id} is now {status}")
            poll_missions.clear()
            st.rerun()
        else:
            show_error(r)
    except requests.RequestException as e:
        st.error(f"Error updating mission: {e}")


def worker_call(endpoint, payload=None):
    try:
        r = requests.post(f"{WORKER}/{endpoint}", json=payload or {}, timeout=10)
        if r.ok:
            return r.json()
        show_error(r)
    except requests.RequestException as e:
        st.error(f"Worker unreachable ({endpoint}): {e}")
    return None


# -------------------------------
# 1️⃣ MISSION PLANNER DASHBOARD
# -------------------------------
if page == "🛰 Mission Planner":
    st.title("🛰 Drone Survey Management System")

    # ---------- DRONES ----------
    st.header("🛩️ Manage Drones")
    drones = get_data("drones")
    if drones:
        for d in drones:
            cols = st.columns([4, 1])
            cols[0].write(
                f"**{d['id']} — {d['name']}** ({d['model'] or 'n/a'}, S/N {d['serial_number']}) | "
                f"Battery: {d['battery_level']}% | Status: {d['status']} | "
                f"📍 {d.get('location_name') or 'unknown'}"
            )
            if cols[1].button("🗑 Remove", key=f"del_drone_{d['id']}"):
                delete_item("drones", d["id"])
    else:
        st.info("No drones added yet.")

    st.caption("Click the map to set the new drone's home location.")
    location_state = st_folium(create_draw_map(markers=drones), height=350, key="drone_location_map")
    location = clicked_location(location_state)
    if location:
        st.session_state["drone_location"] = location
    location = st.session_state.get("drone_location")
    if location:
        st.success(f"Selected location: {location['location_name']}")

    with st.form("add_drone"):
        col1, col2, col3 = st.columns(3)
        name = col1.text_input("Drone Name")
        serial = col2.text_input("Serial Number")
        model = col3.text_input("Model")
        battery = col1.number_input("Battery %", 0, 100, 100)
        max_flight = col2.number_input("Max flight time (min)", 5, 180, 30)
        health = col3.selectbox("Health", ["excellent", "good", "fair", "needs-attention", "critical"], index=1)
        if st.form_submit_button("Add Drone"):
            body = {
                "name": name,
                "serial_number": serial,
                "model": model,
                "battery_level": battery,
                "max_flight_time": max_flight,
                "health_status": health,
            }
            if location:
                body.update(latitude=location["lat"], longitude=location["lng"], location_name=location["location_name"])
            r = requests.post(f"{API}/drones", json=body, timeout=10)
            if r.ok:
                st.success("Drone added")
                st.session_state.pop("drone_location", None)
                st.rerun()
            else:
                show_error(r)

    st.divider()

    # ---------- NEW MISSION ----------
    st.header("🗺️ Plan a Survey Mission")
    st.caption("Draw the survey area with the polygon or rectangle tool.")
    draw_state = st_folium(create_draw_map(), height=450, key="mission_draw_map")
    try:
        drawn = drawn_polygon(draw_state)
    except InvalidGeometry as e:
        st.error(f"Invalid survey area: {e}")
        drawn = None
    if drawn:
        st.session_state["survey_area"] = drawn["polygon"]
    survey_area = st.session_state.get("survey_area")

    col1, col2, col3, col4 = st.columns(4)
    pattern = col1.selectbox("Flight pattern", PATTERNS)
    altitude = col2.number_input("Altitude (m)", 10.0, 500.0, 100.0)
    speed = col3.number_input("Speed (m/s)", 1.0, 20.0, 10.0)
    overlap = col4.slider("Image overlap (%)", 0, 90, 70)

    if survey_area:
        area = estimate_area(survey_area)
        try:
            preview = generate_flight_path(survey_area, pattern, altitude)
            st.caption(f"Area: {format_area(area)} | {len(preview)} waypoints")
            st.pydeck_chart(preview_deck(survey_area, [wp._asdict() for wp in preview]), use_container_width=True)
        except InvalidGeometry as e:
            st.warning(f"Cannot build a flight path for this area: {e}")

    with st.form("add_mission"):
        name = st.text_input("Mission Name")
        description = st.text_area("Description")
        col1, col2, col3 = st.columns(3)
        start_date = col1.date_input("Start date")
        start_time = col2.time_input("Start time (UTC)", value=dt_time(9, 0))
        duration = col3.number_input("Duration (min)", 1, 1440, 30)
        recurring = col1.checkbox("Recurring")
        frequency = col2.selectbox("Repeat", ["daily", "weekly", "monthly"])
        interval = col3.number_input("Every", 1, 30, 1)
        draft = st.checkbox("Save as draft")

        when = datetime.combine(start_date, start_time).replace(tzinfo=timezone.utc)
        available = get_data("drones/available", params={"start": when.isoformat()})
        drone_options = {f"{d['name']} (ID: {d['id']})": d["id"] for d in available}
        selected_drone = st.selectbox("Drone", list(drone_options.keys()) or ["No drones available"])

        if st.form_submit_button("Create Mission"):
            if not survey_area:
                st.warning("Please draw a survey area first.")
            elif not drone_options:
                st.warning("No drone is available for this time.")
            else:
                schedule = {"type": "oneTime", "date_time": when.isoformat(), "duration_minutes": duration}
                if recurring:
                    schedule.update(type="recurring", recurrence={"frequency": frequency, "interval": interval})
                body = {
                    "name": name,
                    "description": description,
                    "drone_id": drone_options[selected_drone],
                    "status": "draft" if draft else "scheduled",
                    "survey_area": survey_area,
                    "flight_parameters": {
                        "altitude": altitude, "speed": speed, "flight_pattern": pattern, "overlap": overlap,
                    },
                    "schedule": schedule,
                }
                r = requests.post(f"{API}/missions", json=body, timeout=10)
                if r.ok:
                    st.success(f"Mission created (ID {r.json()['id']})")
                    st.session_state.pop("survey_area", None)
                    poll_missions.clear()
                    st.rerun()
                else:
                    show_error(r)

    st.divider()

    # ---------- MISSIONS ----------
    st.header("🚀 Missions")
    missions = get_data("missions")
    if not missions:
        st.info("No missions planned yet.")
    for m in missions:
        cols = st.columns([4, 1, 1])
        cols[0].write(
            f"**Mission {m['id']} — {m['name']}** | Drone {m['drone_id']} | "
            f"{m['flight_parameters']['flight_pattern']} @ {m['flight_parameters']['altitude']}m | "
            f"{m['schedule']['date_time']} | Status: {m['status']}"
        )
        if m["status"] == "draft" and cols[1].button("📅 Schedule", key=f"sched_{m['id']}"):
            set_status(m["id"], "scheduled")
        if m["status"] == "scheduled" and cols[1].button("✖ Cancel", key=f"cancel_{m['id']}"):
            set_status(m["id"], "cancelled")
        if m["status"] != "in-progress" and cols[2].button("🗑 Remove", key=f"del_mission_{m['id']}"):
            delete_item("missions", m["id"])


# -------------------------------
# 2️⃣ FLEET VISUALIZATION DASHBOARD
# -------------------------------
elif page == "🚁 Fleet Visualization":
    st.title("🚁 Fleet Visualization & Management Dashboard")
    refresh_interval = st.sidebar.slider("Auto-refresh (seconds)", 2, 30, 5)
    st_autorefresh(interval=refresh_interval * 1000, key="fleet_refresh")

    drones = get_data("drones")
    if not drones:
        st.warning("No drones available in inventory.")
    else:
        df = pd.DataFrame(drones)
        df = df.rename(columns={
            "id": "Drone ID",
            "name": "Drone Name",
            "model": "Model",
            "status": "Status",
            "battery_level": "Battery (%)",
            "health_status": "Health",
            "location_name": "Location",
        })
        df = df[["Drone ID", "Drone Name", "Model", "Status", "Battery (%)", "Health", "Location"]]

        # Battery + status color formatting
        def color_battery(val):
            if val >= 70:
                color = 'lightgreen'
            elif val >= 40:
                color = 'khaki'
            else:
                color = 'salmon'
            return f'background-color: {color}'

        def color_status(val):
            color = 'lightgreen' if val == 'available' else 'lightcoral'
            return f'background-color: {color}'

        styled_df = df.style.map(color_battery, subset=["Battery (%)"]).map(color_status, subset=["Status"])

        st.subheader("📦 Drone Inventory")
        st.dataframe(styled_df, use_container_width=True)

        col1, col2, col3, col4 = st.columns(4)
        col1.metric("Total Drones", len(df))
        col2.metric("Available Drones", int((df["Status"] == "available").sum()))
        col3.metric("In Mission", int((df["Status"] == "in-mission").sum()))
        col4.metric("Avg Battery", f"{df['Battery (%)'].mean():.0f}%")
        st.progress(int(df["Battery (%)"].mean()))
        st.caption(f"🔄 Auto-refresh every {refresh_interval} sec")

        located = df.assign(lat=[d.get("latitude") for d in drones], lon=[d.get("longitude") for d in drones])
        located = located.dropna(subset=["lat", "lon"])
        if not located.empty:
            st.subheader("📍 Drone Locations")
            st.map(located[["lat", "lon"]])


# -----------------------------------------------------------
# 3️⃣  MISSION MONITORING DASHBOARD
# -----------------------------------------------------------
elif page == "📡 Mission Monitoring":
    st.title("🛰 Mission Control Center")

    # map refresh follows the simulation tick; the mission list polls far less often
    st_autorefresh(interval=max(int(SIM_TICK_SECONDS * 1000), 500), key="mission_refresh")

    missions = [m for m in poll_missions(API) if m["status"] in ("scheduled", "in-progress", "completed", "aborted")]
    if not missions:
        st.info("No scheduled or running missions.")
    else:
        mission_map = {f"Mission {m['id']} — {m['name']} ({m['status']})": m["id"] for m in missions}
        selected = st.selectbox("Select Mission", list(mission_map.keys()), key="monitor_mission")
        mission_id = mission_map[selected]

        if st.session_state.get("monitored_mission") != mission_id:
            if worker_call("monitor/select", {"mission_id": mission_id}) is not None:
                st.session_state["monitored_mission"] = mission_id

        try:
            payload = requests.get(f"{WORKER}/monitor", timeout=5).json()
        except (requests.RequestException, ValueError) as e:
            st.error(f"Worker unreachable: {e}")
            payload = {}

        status = payload.get("status") or "unknown"
        st.markdown(f"### 🛩 Mission {mission_id} — {status.capitalize()}")
        st.progress(int(payload.get("completion_percent", 0)))
        st.caption(
            f"Waypoint {payload.get('step_index', 0) + 1} of {len(payload.get('flight_path') or []) or '?'}"
            f" | {'Simulating' if payload.get('running') else 'Idle'}"
        )

        btns = st.columns(3)
        if btns[0].button("🚀 Start", disabled=status != "scheduled"):
            if worker_call("monitor/start", {"mission_id": mission_id}) is not None:
                st.success("Mission started")
                poll_missions.clear()
        if btns[1].button("✅ Complete", disabled=status != "in-progress"):
            if worker_call("monitor/complete") is not None:
                st.success("Mission completed")
                poll_missions.clear()
        if btns[2].button("🛑 Abort", disabled=status != "in-progress"):
            if worker_call("monitor/abort") is not None:
                st.warning("Mission aborted")
                poll_missions.clear()

        st.divider()
        st.subheader("🌍 Live Flight Map")
        deck = monitoring_deck(payload)
        if deck is not None:
            st.pydeck_chart(deck, use_container_width=True)
        else:
            st.info("Waiting for mission data...")


# -----------------------------------------------------------
# 4️⃣ SURVEY REPORTING & ANALYTICS PORTAL
# -----------------------------------------------------------
elif page == "📊 Survey Reporting & Analytics Portal":
    st.title("📊 Survey Reporting and Analytics Portal")

    summary = get_data("reports/summary")
    if not summary:
        st.info("No report data available yet.")
    else:
        # --- Organization-level Statistics ---
        st.header("🏢 Organization-wide Survey Statistics")
        by_status = summary["by_status"]
        col1, col2, col3, col4 = st.columns(4)
        col1.metric("Total Missions", summary["total_missions"])
        col2.metric("Completed", by_status.get("completed", 0))
        col3.metric("In Progress", by_status.get("in-progress", 0))
        col4.metric("Area Surveyed", summary["total_area_label"])
        st.caption(
            f"🕒 Avg Flight Distance: {summary['avg_distance_km']:.2f} km | "
            f"Avg Flight Duration: {summary['avg_duration_min']:.2f} mins"
        )
        st.bar_chart(pd.Series(by_status, name="Missions"))

        st.divider()

        # --- Completed Missions ---
        st.header("✈️ Completed Surveys")
        completed = summary["completed"]
        if not completed:
            st.info("No completed missions yet.")
        else:
            report_df = pd.DataFrame(completed).rename(columns={
                "mission_id": "Mission ID",
                "name": "Mission",
                "drone_id": "Drone ID",
                "flight_pattern": "Pattern",
                "altitude": "Altitude (m)",
                "area_label": "Area",
                "waypoint_count": "Waypoints",
                "distance_km": "Distance (km)",
                "estimated_duration_min": "Duration (min)",
                "completed_at": "Completed",
            })
            st.bar_chart(report_df.set_index("Mission")[["Distance (km)", "Duration (min)"]])
            st.dataframe(
                report_df[["Mission ID", "Mission", "Drone ID", "Pattern", "Altitude (m)", "Area",
                           "Waypoints", "Distance (km)", "Duration (min)", "Completed"]],
                use_container_width=True,
            )
