"""
NisseKomm - Main Streamlit Application

Entry point for the NisseKomm advent calendar. Wires family login, the
storage backend and the progression engine, and shows today's quest with a
code form and the progress overview.
"""

import logging

import streamlit as st

from nissekomm.auth import authenticate_family
from nissekomm.clock import SystemClock
from nissekomm.config import ConfigurationError, load_settings
from nissekomm.content import load_catalog
from nissekomm.database import PersistenceError, RateLimitError
from nissekomm.engine import GameEngine
from nissekomm.models import QuestStatus
from nissekomm.storage import create_storage_adapter
from nissekomm.validators import ContentValidationError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Page configuration
st.set_page_config(
    page_title="NisseKomm",
    page_icon="🎄",
    layout="wide"
)

FAMILIES_WORKSHEET = "Families"
FACTS_WORKSHEET = "Facts"


def initialize_session_state():
    """Initialize Streamlit session state with default values.

    Session state fields:
    - authenticated: bool - Whether a family is logged in
    - family_name: str - Family's unique identifier
    - session_id: str | None - Key of the family's facts in the Facts sheet
    - engine: GameEngine | None - Progression engine for the family
    """
    if "authenticated" not in st.session_state:
        st.session_state.authenticated = False
    if "family_name" not in st.session_state:
        st.session_state.family_name = ""
    if "session_id" not in st.session_state:
        st.session_state.session_id = None
    if "engine" not in st.session_state:
        st.session_state.engine = None


@st.cache_resource
def get_catalog():
    """Load and validate the quest content once per server process."""
    return load_catalog()


def get_sheets_client(settings):
    """Open the Families and Facts worksheets of the configured spreadsheet.

    Returns:
        Tuple of (families worksheet, facts worksheet)

    Raises:
        Exception: If secrets are not configured or connection fails
    """
    try:
        import gspread
        from google.oauth2.service_account import Credentials

        credentials_dict = st.secrets["gcp_service_account"]

        scopes = [
            "https://www.googleapis.com/auth/spreadsheets",
            "https://www.googleapis.com/auth/drive"
        ]
        credentials = Credentials.from_service_account_info(
            credentials_dict,
            scopes=scopes
        )

        client = gspread.authorize(credentials)
        spreadsheet = client.open_by_key(settings.google_sheets_id)

        return spreadsheet.worksheet(FAMILIES_WORKSHEET), spreadsheet.worksheet(FACTS_WORKSHEET)

    except Exception as e:
        logger.error(f"Failed to connect to Google Sheets: {e}")
        raise


def start_engine(settings, session_id, facts_sheet):
    storage = create_storage_adapter(settings, session_id, facts_sheet)
    return GameEngine(get_catalog(), storage, SystemClock(settings), settings)


def render_sidebar_auth(settings, families_sheet, facts_sheet):
    """Family login form in the sidebar. First login creates the family."""
    with st.sidebar.form("auth_form"):
        st.subheader("🎅 Logg inn")
        family_name = st.text_input("Familienavn")
        pin = st.text_input("PIN", type="password")
        submitted = st.form_submit_button("Logg inn")

    if not submitted:
        return

    family_name = family_name.strip()
    pin = pin.strip()
    if not family_name or not pin:
        st.sidebar.error("Skriv inn både familienavn og PIN")
        return

    try:
        family = authenticate_family(family_name, pin, families_sheet)
    except (PersistenceError, RateLimitError) as e:
        logger.error(f"Authentication error: {e}")
        st.sidebar.error("Får ikke kontakt med databasen. Prøv igjen.")
        return

    if family is None:
        st.sidebar.error("Feil familienavn eller PIN")
        return

    st.session_state.authenticated = True
    st.session_state.family_name = family["family_name"]
    st.session_state.session_id = family["session_id"]
    st.session_state.engine = start_engine(settings, family["session_id"], facts_sheet)
    st.rerun()


def render_quest(engine: GameEngine, day: int):
    """Mission email and code form for one day."""
    quest = engine.catalog.quest_for_day(day)
    if quest is None:
        st.info("Ingen oppdrag i dag.")
        return

    status = engine.get_quest_status(day)
    st.header(f"Dag {day}: {quest.title}")

    if status == QuestStatus.LOCKED:
        st.warning("🔒 Dette oppdraget er ikke tilgjengelig ennå.")
        return

    st.markdown(quest.mail_text)
    engine.mark_email_viewed(day)

    if status == QuestStatus.COMPLETED:
        st.success("✅ Oppdraget er fullført!")
    else:
        with st.form(f"code_form_{day}"):
            code = st.text_input("Kode")
            submitted = st.form_submit_button("Send kode")
        if submitted:
            result = engine.submit_code(code, quest.code, day)
            if result.success:
                st.success(result.message)
                if result.is_new_completion:
                    st.balloons()
            else:
                st.error(f"{result.message} (forsøk: {engine.get_failed_attempts(day)})")

    if quest.bonus_quest and engine.is_bonus_quest_accessible(day):
        st.subheader(f"⭐ Bonus: {quest.bonus_quest.title}")
        st.markdown(quest.bonus_quest.description)
        if engine.is_bonus_quest_completed(quest):
            st.success("Bonusoppdraget er fullført!")
        elif quest.bonus_quest.validation == "code":
            with st.form(f"bonus_form_{day}"):
                bonus_code = st.text_input("Bonuskode")
                bonus_submitted = st.form_submit_button("Send bonuskode")
            if bonus_submitted:
                result = engine.submit_bonus_code(day, bonus_code)
                (st.success if result.success else st.error)(result.message)
        elif st.button("Forelder: godkjenn bonusoppdrag", key=f"approve_{day}"):
            result = engine.approve_bonus_quest(day)
            (st.success if result.success else st.error)(result.message)


def render_progress(engine: GameEngine):
    summary = engine.get_progression_summary()

    columns = st.columns(4)
    columns[0].metric("Oppdrag", f"{summary['main_quests']['completed']}/{summary['main_quests']['total']}")
    columns[1].metric("Merker", f"{summary['badges']['earned']}/{summary['badges']['total']}")
    columns[2].metric("Symboler", f"{summary['symbols']['collected']}/{summary['symbols']['total']}")
    columns[3].metric("Historier", f"{summary['story_arcs']['completed']}/{summary['story_arcs']['total']}")

    st.subheader("Systemstatus")
    for metric in engine.get_progressive_metrics() + engine.get_story_arc_metrics():
        st.progress(min(metric.value / metric.max, 1.0) if metric.max else 0.0,
                    text=f"{metric.name}: {metric.value}/{metric.max} ({metric.status})")

    st.subheader("Varsler")
    for alert in engine.get_daily_alerts():
        st.write(f"[{alert.timestamp}] {alert.text}")


def main():
    """Main application entry point."""
    initialize_session_state()

    st.title("🎄 NisseKomm")

    try:
        settings = load_settings(st.secrets)
        get_catalog()
    except (ConfigurationError, ContentValidationError) as e:
        st.error("Konfigurasjonsfeil. Kontakt administrator.")
        logger.error(f"Failed to load configuration: {e}")
        return

    families_sheet = facts_sheet = None
    if settings.storage_backend == "sheets":
        try:
            families_sheet, facts_sheet = get_sheets_client(settings)
        except Exception:
            st.error("Får ikke kontakt med databasen. Kontakt administrator.")
            return

    if not st.session_state.authenticated:
        if families_sheet is None:
            # Local mode has a single player and no login
            st.session_state.authenticated = True
            st.session_state.family_name = "Lokal"
            st.session_state.engine = start_engine(settings, None, None)
        else:
            render_sidebar_auth(settings, families_sheet, facts_sheet)
            st.info("👈 Logg inn eller opprett en familie i sidepanelet for å starte!")
            return

    engine: GameEngine = st.session_state.engine
    engine.unlock_timed_modules()

    st.sidebar.success(f"Innlogget som: **{st.session_state.family_name}**")
    countdown = engine.get_christmas_countdown()
    st.sidebar.metric("Dager til jul", countdown["days"])
    st.sidebar.metric("Uleste e-poster", engine.get_unread_email_count())

    if st.sidebar.button("Logg ut"):
        engine.close()
        for key in list(st.session_state.keys()):
            del st.session_state[key]
        st.rerun()

    tabs = st.tabs(["📬 Dagens oppdrag", "📊 Fremdrift"])
    with tabs[0]:
        render_quest(engine, min(engine.current_day(), engine.catalog.total_days))
    with tabs[1]:
        render_progress(engine)


if __name__ == "__main__":
    main()
