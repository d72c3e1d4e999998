# -*- coding: utf-8 -*-
"""
Solar calculator: tariff bill calculator and solar + battery plan recommender.
"""
import logging

import streamlit as st
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from solarcalc.pricing_table import (
    PANEL_WATTAGE, PEAK_SUN_HOURS, BATTERY_CAPACITY_KWH, EXPORT_RATE,
    RATE_LOW, RATE_HIGH,
)
from solarcalc.tariff import (
    BILL_GAP_LOWER, BILL_GAP_UPPER,
    sync_from_usage, sync_from_bill, round_up_blind_spot,
)
from solarcalc.solar_flow import simulate_solar
from solarcalc.financial import cash_flow_projection
from solarcalc.optimizer import (
    evaluate_plan, feasible_plans, select_recommendations, results_frame,
    savings_curves, crossover_panels,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

# View defaults
DEFAULT_USAGE = 1200  # kWh
DEFAULT_DAYTIME_PERCENT = 30
DEFAULT_PANELS = 12
DEFAULT_BATTERIES = 1

PLAN_TITLES = {
    "lowest_payback": "Lowest Payback",
    "usage_matched": "Usage Matched",
    "high_offset": "High Offset (90-99%)",
    "max_saving": "Maximum Saving",
}


def format_currency(amount):
    """Format currency values consistently"""
    return f"RM {amount:,.2f}"


def init_state():
    if 'usage_input' not in st.session_state:
        apply_state(sync_from_usage(DEFAULT_USAGE))


def apply_state(state):
    st.session_state.usage_input = state.usage
    st.session_state.bill_input = state.bill
    st.session_state.gap_warning = state.gap_warning


def on_usage_change():
    apply_state(sync_from_usage(st.session_state.usage_input))


def on_bill_change():
    try:
        apply_state(sync_from_bill(st.session_state.bill_input))
    except ValueError as e:
        st.session_state.error = str(e)


def on_round_up():
    apply_state(round_up_blind_spot())


def render_bill_usage_inputs():
    """Bill and usage fields kept in sync, with the blind-spot warning."""
    col1, col2 = st.columns(2)
    with col1:
        st.number_input("Avg. Monthly Bill (RM)", min_value=0.0, step=10.0,
                        key="bill_input", on_change=on_bill_change)
    with col2:
        st.number_input("Monthly Usage (kWh)", min_value=0.0, step=10.0,
                        key="usage_input", on_change=on_usage_change)

    if st.session_state.get('error'):
        st.error(st.session_state.pop('error'))

    if st.session_state.gap_warning:
        st.warning(
            f"**Tariff Blind Spot**: bill amounts between RM{BILL_GAP_LOWER:.1f} and "
            f"RM{BILL_GAP_UPPER:.1f} are impossible due to tariff tiers. Usage was set to 1501 kWh."
        )
        st.button(f"Round up to RM{BILL_GAP_UPPER:.1f}", on_click=on_round_up)


def render_bill_details(bill, title, projected=False):
    st.markdown(f"#### {title}")
    rows = [
        ("Billable Usage (kWh)", f"{bill.units:,.2f}"),
        ("Base Charge", format_currency(bill.base_charge)),
        ("Retail Charge", format_currency(bill.retail_charge)),
        ("EE Incentive", format_currency(bill.discount)),
    ]
    if projected and bill.ee_adjustment:
        rows.append(("EE Incentive Adj.", format_currency(bill.ee_adjustment)))
    rows += [
        ("Service Tax (8%)", format_currency(bill.service_tax)),
        ("KWTBB (1.6%)", format_currency(bill.kwtbb)),
    ]
    if projected and bill.export_credit < 0:
        rows.append((f"Export Credit ({bill.export_units:,.0f} units @ RM{EXPORT_RATE:.2f})",
                     format_currency(bill.export_credit)))
    rows.append(("Total Bill", format_currency(bill.final_total)))
    st.table(pd.DataFrame(rows, columns=["Item", "Amount"]).set_index("Item"))


def render_calculator(daytime_percent):
    col1, col2 = st.columns(2)
    with col1:
        panels = st.number_input(f"Solar Panels ({PANEL_WATTAGE}W)", min_value=0, max_value=500,
                                 value=DEFAULT_PANELS, key="calc_panels")
    with col2:
        batteries = st.number_input("Batteries", min_value=0, max_value=100,
                                    value=DEFAULT_BATTERIES, key="calc_batteries",
                                    help=f"Effective capacity ~{BATTERY_CAPACITY_KWH}kWh per unit")
    st.caption(f"Total System Capacity: {panels * PANEL_WATTAGE / 1000:.2f} kWp")

    sim = simulate_solar(st.session_state.usage_input, daytime_percent, panels, batteries)
    original = sim.original_bill.final_total
    savings_percent = sim.monthly_savings / original * 100 if original > 0 else 0

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Est. Monthly Savings", format_currency(sim.monthly_savings), f"{savings_percent:.0f}%")
    with col2:
        st.metric("kWh Generated", f"{sim.solar_generation_monthly:,.0f}")
    with col3:
        st.metric("kWh Battery Used", f"{sim.battery_discharge:,.0f}")
    with col4:
        st.metric("Grid Import (kWh)", f"{sim.grid_import:,.0f}")

    chart_col1, chart_col2 = st.columns(2)
    with chart_col1:
        mix = pd.DataFrame({
            'Source': ['Grid Import', 'Solar Direct', 'Battery'],
            'kWh': [sim.grid_import, sim.solar_utilized, sim.battery_discharge],
        })
        mix = mix[mix['kWh'] > 0]
        fig = px.pie(mix, names='Source', values='kWh', title='Energy Source Mix', hole=0.4)
        st.plotly_chart(fig, use_container_width=True)
    with chart_col2:
        fig = go.Figure(go.Bar(x=['Original', 'With Solar'],
                               y=[original, sim.new_bill.final_total],
                               marker_color=['#ef4444', '#10b981']))
        fig.update_layout(title='Monthly Bill (RM)')
        st.plotly_chart(fig, use_container_width=True)

    bill_col1, bill_col2 = st.columns(2)
    with bill_col1:
        render_bill_details(sim.original_bill, "Original Utility Bill")
    with bill_col2:
        render_bill_details(sim.new_bill, "Projected Bill with Solar", projected=True)

    st.info(
        f"Tariff is a flat rate: RM{RATE_LOW}/kWh for usage ≤1500 kWh and RM{RATE_HIGH}/kWh above. "
        f"Service Tax (8%) applies only to the cost above 600 kWh. Solar generation assumes "
        f"{PEAK_SUN_HOURS} peak sun hours/day; export is credited at RM{EXPORT_RATE:.2f}/kWh."
    )


def render_plan(title, plan):
    st.markdown(f"#### {title}")
    if plan is None:
        st.write("No matching configuration.")
        return
    st.metric("Configuration", f"{plan.panels} panels + {plan.batteries} batteries", f"{plan.kwp:.2f} kWp")
    st.write(f"**Monthly Savings:** {format_currency(plan.monthly_savings)} ({plan.saved_percentage:.0f}%)")
    st.write(f"**New Bill:** {format_currency(plan.new_bill_amount)}")
    st.write(f"**Cash Price:** {format_currency(plan.system_cost_cash)}")
    st.write(f"**Instalment Price:** {format_currency(plan.system_cost_instalment)}")
    st.write(f"**Payback:** {plan.payback_years_cash:.1f} - {plan.payback_years_instalment:.1f} years")
    st.write(f"**ROI:** {plan.roi_percentage:.1f}% / year")
    st.write(f"**Inverter:** {plan.inverter_size}")
    st.write(f"**Import / Export:** {plan.new_import_kwh:,.0f} / {plan.new_export_kwh:,.0f} kWh")
    if plan.batteries:
        st.write(f"**Battery Utilisation:** {plan.battery_utilization * 100:.0f}%")


def render_recommender(daytime_percent):
    col1, col2 = st.columns(2)
    with col1:
        phase_label = st.radio("TNB Phase", ["Single Phase", "Three Phase"], horizontal=True)
    with col2:
        roof_limit = st.number_input("Max panels on roof (0 = no limit)", min_value=0, value=0)
    phase = "single" if phase_label == "Single Phase" else "three"

    with st.spinner("Searching configurations..."):
        plans = feasible_plans(st.session_state.usage_input, daytime_percent, phase, roof_limit or None)
        recommendations = select_recommendations(plans, st.session_state.usage_input, daytime_percent)

    if recommendations.is_empty:
        st.warning("No feasible configuration: every package would export more than it imports.")
    else:
        columns = st.columns(4)
        for column, (name, plan) in zip(columns, recommendations.as_dict().items()):
            with column:
                render_plan(PLAN_TITLES[name], plan)
        with st.expander(f"All feasible packages ({len(plans)})"):
            st.dataframe(results_frame(plans).sort_values("payback_years_cash"))

    st.markdown("---")
    st.subheader("Custom Plan")
    col1, col2 = st.columns(2)
    with col1:
        manual_panels = st.number_input("Panels", min_value=0, max_value=56, value=0, key="manual_panels")
    with col2:
        manual_batteries = st.number_input("Batteries", min_value=0, max_value=20, value=0, key="manual_batteries")
    if manual_panels:
        plan = evaluate_plan(st.session_state.usage_input, daytime_percent, manual_panels, manual_batteries, phase)
        if plan is None:
            st.error(f"{manual_panels} panels is not a supported configuration")
        else:
            render_plan("Custom", plan)
            cumulative = cash_flow_projection(plan.system_cost_cash, plan.monthly_savings)
            cashflow_data = pd.DataFrame({'Year': range(len(cumulative)),
                                          'Cumulative Cash Flow (RM)': cumulative})
            st.line_chart(cashflow_data.set_index('Year'))


def render_graphs(daytime_percent):
    curves = savings_curves(st.session_state.usage_input, daytime_percent)
    fig = px.line(curves, x='panels', y='savings', color='batteries',
                  labels={'panels': 'Panels', 'savings': 'Monthly Savings (RM)', 'batteries': 'Batteries'},
                  title='Monthly Savings by System Size')
    for batteries, panel in crossover_panels(curves).items():
        if panel is not None:
            fig.add_vline(x=panel, line_dash='dot', line_color='#f59e0b',
                          annotation_text=f"{batteries}B export > import")
    st.plotly_chart(fig, use_container_width=True)

    with st.expander("Data"):
        st.dataframe(curves)


def render_daily(daytime_percent):
    col1, col2 = st.columns(2)
    with col1:
        panels = st.number_input("Panels", min_value=0, max_value=500, value=DEFAULT_PANELS, key="daily_panels")
    with col2:
        batteries = st.number_input("Batteries", min_value=0, max_value=100, value=DEFAULT_BATTERIES,
                                    key="daily_batteries")
    sim = simulate_solar(st.session_state.usage_input, daytime_percent, panels, batteries)
    flow = sim.daily

    labels = ['Solar', 'Grid', 'Battery', 'Home (day)', 'Home (night)', 'Export']
    sources = [0, 1, 0, 0, 2, 1]
    targets = [3, 3, 2, 5, 4, 4]
    values = [flow.solar_to_home, flow.grid_to_home_day, flow.solar_to_battery,
              flow.solar_to_grid, flow.battery_to_home, flow.grid_to_home_night]
    fig = go.Figure(go.Sankey(node=dict(label=labels, pad=20),
                              link=dict(source=sources, target=targets, value=values)))
    fig.update_layout(title='Daily Energy Flow (kWh)')
    st.plotly_chart(fig, use_container_width=True)

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Daytime Demand", f"{flow.day_demand:.1f} kWh")
    with col2:
        st.metric("Nighttime Demand", f"{flow.night_demand:.1f} kWh")
    with col3:
        st.metric("Solar Generation", f"{flow.solar_generation:.1f} kWh")
    with col4:
        st.metric("Battery Stored", f"{flow.battery_stored:.1f} kWh")
    st.caption(f"Per month: {sim.grid_import:,.0f} kWh imported, {sim.export_units:,.0f} kWh exported, "
               f"saving {format_currency(sim.monthly_savings)}")


def main():
    st.set_page_config(
        page_title="Solar Calculator",
        page_icon="☀️",
        layout="wide",
    )

    st.markdown("""
    <style>
    .main-header {
        font-size: 2.5rem;
        color: #1E88E5;
        text-align: center;
    }
    </style>
    """, unsafe_allow_html=True)

    st.markdown('<p class="main-header">Solar Calculator</p>', unsafe_allow_html=True)

    init_state()
    render_bill_usage_inputs()
    daytime_percent = st.slider("Daytime Usage (%)", 0, 100, DEFAULT_DAYTIME_PERCENT)

    tab1, tab2, tab3, tab4 = st.tabs(["🧮 Calculator", "🏠 Recommender", "📈 Graph", "⚡ Illustration"])
    with tab1:
        render_calculator(daytime_percent)
    with tab2:
        render_recommender(daytime_percent)
    with tab3:
        render_graphs(daytime_percent)
    with tab4:
        render_daily(daytime_percent)


if __name__ == "__main__":
    main()
