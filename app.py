from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

from revelevate.analytics import (
    PROFIT_BASELINE,
    aggregate_category_impact,
    build_profitability_path,
    category_impact_frame,
    consumer_usage_frame,
    profitability_frame,
)
from revelevate.assistant import StrategyAssistant, opening_transcript
from revelevate.config import (
    default_provider,
    load_env_file,
    log_level,
    provider_presets,
    snapshot_path,
)
from revelevate.errors import PlanGenerationError, RevElevateError
from revelevate.ledger import ledger_fingerprint, parse_ledger
from revelevate.llm import LLMClient, LLMLedgerExtractor
from revelevate.models import ChatMessage, PerformanceSnapshot, StakeholderRole, StrategicPlan
from revelevate.pdf_report import build_chat_pdf, build_plan_pdf
from revelevate.plan import filter_recommendations
from revelevate.plan_request import GROWTH_RANGE, TIMELINE_RANGE, build_plan_request
from revelevate.planner import PlanGenerator
from revelevate.storage import snapshot_store_for


load_env_file()
logging.basicConfig(level=log_level(), format="%(asctime)s %(name)s %(levelname)s %(message)s")
logger = logging.getLogger("revelevate.app")

PROVIDER_PRESETS = provider_presets()
SNAPSHOT_STORE = snapshot_store_for(snapshot_path())

SESSION_PRESET_KEYS = {
    "base_url": "llm_base_url",
    "model": "llm_model",
    "api_key": "llm_api_key",
}

SESSION_DEFAULTS: Dict[str, Any] = {
    "llm_provider": default_provider(),
    "llm_base_url": "",
    "llm_model": "",
    "llm_api_key": "",
    "llm_temperature": 0.4,
    "llm_max_tokens": 6000,
    "_llm_defaults_applied": False,
    "goal_growth": 15,
    "goal_timeline": 18,
    "goal_location": "",
    "view_role": StakeholderRole.GENERAL_MANAGER.value,
    "plan": None,
    "plan_goals": None,
    "plan_raw_response": None,
    "ledger_fingerprint": None,
    "ledger_error": None,
}

LEDGER_TYPES = ["csv", "txt", "md", "json", "tsv"]


@dataclass
class LLMSettings:
    provider: str
    client: Optional[LLMClient]
    temperature: float
    max_tokens: int


def apply_provider_defaults_to_session(provider: str, overwrite: bool = False) -> None:
    preset = PROVIDER_PRESETS.get(provider, {})
    for preset_key, session_key in SESSION_PRESET_KEYS.items():
        value = preset.get(preset_key, "")
        if overwrite or not st.session_state.get(session_key):
            st.session_state[session_key] = value


def ensure_session_defaults() -> None:
    for key, value in SESSION_DEFAULTS.items():
        st.session_state.setdefault(key, value)
    if "snapshot" not in st.session_state:
        st.session_state["snapshot"] = SNAPSHOT_STORE.load() or PerformanceSnapshot.default()
    if "chat" not in st.session_state:
        st.session_state["chat"] = opening_transcript()


# --- Sidebar ---------------------------------------------------------------
def render_llm_settings() -> LLMSettings:
    st.sidebar.subheader("LLM connection")

    if not st.session_state["_llm_defaults_applied"]:
        apply_provider_defaults_to_session(st.session_state["llm_provider"])
        st.session_state["_llm_defaults_applied"] = True

    def _on_provider_change() -> None:
        apply_provider_defaults_to_session(st.session_state["llm_provider"], overwrite=True)

    st.sidebar.selectbox(
        "Provider",
        list(PROVIDER_PRESETS.keys()),
        key="llm_provider",
        on_change=_on_provider_change,
        help="Any OpenAI-compatible chat completions endpoint works.",
    )
    base_url = st.sidebar.text_input("Base URL", key="llm_base_url")
    model = st.sidebar.text_input("Model name", key="llm_model")
    api_key = st.sidebar.text_input("API key", key="llm_api_key", type="password")
    temperature = st.sidebar.slider(
        "Temperature", min_value=0.0, max_value=1.0, step=0.05, key="llm_temperature"
    )
    max_tokens = int(
        st.sidebar.number_input(
            "Max tokens", min_value=512, max_value=16384, step=256, key="llm_max_tokens"
        )
    )

    client = None
    if base_url and model:
        client = LLMClient(base_url=base_url, model=model, api_key=api_key or None)

    return LLMSettings(
        provider=st.session_state["llm_provider"],
        client=client,
        temperature=float(temperature),
        max_tokens=max_tokens,
    )


def render_goal_controls() -> None:
    st.sidebar.subheader("Strategic goals")
    st.sidebar.slider(
        "Profit growth (%)",
        min_value=GROWTH_RANGE[0],
        max_value=GROWTH_RANGE[1],
        step=1,
        key="goal_growth",
    )
    st.sidebar.slider(
        "Timeline (months)",
        min_value=TIMELINE_RANGE[0],
        max_value=TIMELINE_RANGE[1],
        step=1,
        key="goal_timeline",
    )
    st.sidebar.text_input(
        "Property location",
        key="goal_location",
        help="City or market used to benchmark competitors and local demand.",
    )
    st.sidebar.subheader("View context")
    st.sidebar.radio("Stakeholder", [role.value for role in StakeholderRole], key="view_role")


# --- Ledger ----------------------------------------------------------------
def render_ledger_upload(settings: LLMSettings) -> PerformanceSnapshot:
    st.header("Sales Ledger")
    uploaded = st.file_uploader(
        "Upload a sales ledger (CSV preferred; text exports are read by the model)",
        type=LEDGER_TYPES,
    )

    if uploaded is None:
        st.session_state["ledger_fingerprint"] = None
        st.session_state["ledger_error"] = None
    else:
        payload = uploaded.getvalue()
        fingerprint = ledger_fingerprint(uploaded.name, payload)
        if fingerprint != st.session_state["ledger_fingerprint"]:
            content = payload.decode("utf-8", errors="replace")
            extractor = LLMLedgerExtractor(settings.client) if settings.client else None
            st.session_state["ledger_error"] = None
            try:
                with st.spinner("Processing ledger..."):
                    snapshot = parse_ledger(content, uploaded.name, extractor=extractor)
            except RevElevateError as exc:
                logger.warning("Ledger %s rejected: %s", uploaded.name, exc)
                st.session_state["ledger_error"] = exc.user_message
            else:
                st.session_state["snapshot"] = snapshot
                st.session_state["plan"] = None
                SNAPSHOT_STORE.save(snapshot)
            st.session_state["ledger_fingerprint"] = fingerprint

    if st.session_state["ledger_error"]:
        st.error(st.session_state["ledger_error"])

    snapshot: PerformanceSnapshot = st.session_state["snapshot"]
    if snapshot.is_default:
        st.info("No data uploaded yet. Upload a ledger to unlock strategy generation.")
        return snapshot

    extra = snapshot.extra_metrics
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Occupancy", f"{snapshot.occ_rate}%")
    col2.metric("ADR", f"${snapshot.adr:,}")
    col3.metric("RevPAR", f"${snapshot.rev_par:,.2f}")
    col4.metric("Profit margin", f"{snapshot.profit_margin:.1f}%")
    col1.metric("Direct / OTA", f"{snapshot.direct}% / {snapshot.ota}%")
    col2.metric("Transactions", f"{snapshot.transactions:,}")
    col3.metric("Service rating", f"{extra.avg_service_rating:.1f} / 5")
    col4.metric(
        "Add-on usage",
        f"{extra.hosp_addon_pct}% / {extra.non_hosp_addon_pct}%",
        help="Hospitality / non-hospitality add-ons",
    )
    st.caption(f"Source: {snapshot.source} - last sync {snapshot.last_sync}")
    return snapshot


# --- Plan ------------------------------------------------------------------
def request_plan(settings: LLMSettings, snapshot: PerformanceSnapshot) -> None:
    growth = int(st.session_state["goal_growth"])
    timeline = int(st.session_state["goal_timeline"])

    if not settings.client:
        st.error("Provide the LLM base URL and model name in the sidebar to generate a plan.")
        return

    generator = PlanGenerator(
        settings.client, temperature=settings.temperature, max_tokens=settings.max_tokens
    )
    try:
        request = build_plan_request(snapshot, growth, timeline, st.session_state["goal_location"])
        with st.spinner("Generating AI-driven strategy..."):
            result = generator.generate(request)
    except PlanGenerationError as exc:
        logger.warning("Plan generation failed: %s", exc)
        st.error(exc.user_message)
        st.session_state["plan_raw_response"] = generator.last_raw_response
        return
    except RevElevateError as exc:
        st.error(exc.user_message)
        return

    st.session_state["plan"] = result.plan
    st.session_state["plan_goals"] = (growth, timeline)
    st.session_state["plan_raw_response"] = result.raw_response


def render_charts(plan: StrategicPlan, growth: int, timeline: int) -> None:
    col1, col2, col3 = st.columns(3)

    with col1:
        st.subheader("Projected Profitability Path")
        st.caption(f"Target: {PROFIT_BASELINE + growth:.0f}% margin")
        points = build_profitability_path(plan.projected_profitability, growth, timeline)
        st.line_chart(profitability_frame(points))

    with col2:
        st.subheader("Impact Distribution")
        impacts = category_impact_frame(aggregate_category_impact(plan.recommendations))
        if impacts.empty:
            st.info("No recommendations to chart.")
        else:
            st.bar_chart(impacts.set_index("Category")["Total Impact (%)"])
            st.dataframe(impacts, hide_index=True)

    with col3:
        st.subheader("Consumer Usage / Demand")
        usage = consumer_usage_frame(plan.consumer_insights)
        if usage.empty:
            st.info("The model returned no consumer insights.")
        else:
            st.dataframe(
                usage,
                hide_index=True,
                column_config={
                    "Usage Score": st.column_config.ProgressColumn(
                        "Usage Score", min_value=0, max_value=100, format="%d"
                    )
                },
            )


def render_recommendations(plan: StrategicPlan, role: str) -> None:
    recommendations = filter_recommendations(plan.recommendations, role)
    st.header(f"Tailored Action Items for {role}")
    st.caption(f"{len(recommendations)} recommended actions")
    if not recommendations:
        st.warning("No recommendations matched this role's focus areas.")

    for rec in recommendations:
        with st.container(border=True):
            left, right = st.columns([5, 1])
            left.markdown(f"**{rec.priority} priority** - {rec.category}")
            left.subheader(rec.action)
            if rec.detailed_action:
                left.write(rec.detailed_action)
            left.markdown(f"**Goal:** {rec.goal}")
            if rec.example:
                left.info(f"Execution example: {rec.example}")
            right.metric("Impact", rec.estimated_impact, help="Profit boost")


def render_plan_extras(plan: StrategicPlan) -> None:
    investment = plan.recommended_investment
    if investment:
        st.subheader("Recommended Investment")
        st.metric(investment.period or "Investment", investment.amount)
        st.write(investment.rationale)

    if plan.operational_cost_projections:
        st.subheader("Operational Cost Projections")
        df = pd.DataFrame(
            {
                "Month": [p.month for p in plan.operational_cost_projections],
                "Cost": [p.cost for p in plan.operational_cost_projections],
                "Savings Opportunity": [
                    p.savings_opportunity for p in plan.operational_cost_projections
                ],
                "Impact on Profit": [p.impact_on_profit for p in plan.operational_cost_projections],
            }
        )
        st.dataframe(
            df.style.format({"Cost": "${:,.0f}", "Savings Opportunity": "${:,.0f}"}),
            hide_index=True,
        )

    if plan.sources:
        st.subheader("Market Sources")
        for source in plan.sources:
            st.markdown(f"- [{source.title}]({source.uri})")


def render_plan(settings: LLMSettings, snapshot: PerformanceSnapshot) -> None:
    st.header("Strategic Plan")
    growth = int(st.session_state["goal_growth"])
    timeline = int(st.session_state["goal_timeline"])
    st.write(f"Target: **+{growth}%** profit in **{timeline} months**")

    if st.button("Generate Strategy", type="primary", disabled=snapshot.is_default):
        request_plan(settings, snapshot)

    raw_response = st.session_state.get("plan_raw_response")
    if raw_response is not None:
        with st.expander("Raw LLM response", expanded=False):
            st.code(json.dumps(raw_response, indent=2))

    plan: Optional[StrategicPlan] = st.session_state["plan"]
    if plan is None:
        return

    plan_growth, plan_timeline = st.session_state["plan_goals"]
    render_charts(plan, plan_growth, plan_timeline)
    render_recommendations(plan, st.session_state["view_role"])
    render_plan_extras(plan)

    st.subheader("Executive Summary")
    st.write(plan.summary)
    st.download_button(
        "Export Strategic Roadmap (PDF)",
        data=build_plan_pdf(plan, plan_growth, plan_timeline),
        file_name=f"RevElevate_Strategic_Roadmap_{plan_growth}pct.pdf",
        mime="application/pdf",
    )


# --- Assistant -------------------------------------------------------------
def render_assistant(settings: LLMSettings, snapshot: PerformanceSnapshot) -> None:
    st.header("AI Strategist")
    messages: List[ChatMessage] = st.session_state["chat"]

    for message in messages:
        with st.chat_message("user" if message.is_user else "assistant"):
            st.markdown(message.text)
            for source in message.sources:
                st.caption(f"[{source.title}]({source.uri})")

    question = st.chat_input("Ask for a what-if analysis, benchmark or market trend...")
    if question:
        messages.append(ChatMessage(role="user", text=question))
        hotel_context = ""
        if not snapshot.is_default:
            hotel_context = build_plan_request(
                snapshot,
                int(st.session_state["goal_growth"]),
                int(st.session_state["goal_timeline"]),
                st.session_state["goal_location"],
            ).context_text
        with st.spinner("Analysing..."):
            reply = StrategyAssistant(settings.client).ask(
                question, hotel_context, has_data=not snapshot.is_default
            )
        messages.append(reply)
        st.rerun()

    if len(messages) > 1:
        st.download_button(
            "Save chat as PDF",
            data=build_chat_pdf(messages),
            file_name=f"RevElevate_Strategy_Session_{pd.Timestamp.now():%Y-%m-%d}.pdf",
            mime="application/pdf",
        )


def main() -> None:
    st.set_page_config(page_title="RevElevate AI", layout="wide")
    st.title("RevElevate AI")
    st.write(
        "Upload your sales ledger, set a profit goal, and get a data-driven strategic plan "
        "with projections and role-specific action items."
    )

    ensure_session_defaults()
    settings = render_llm_settings()
    render_goal_controls()

    snapshot = render_ledger_upload(settings)
    plan_tab, chat_tab = st.tabs(["Strategy", "AI Strategist"])
    with plan_tab:
        render_plan(settings, snapshot)
    with chat_tab:
        render_assistant(settings, snapshot)


if __name__ == "__main__":
    main()
