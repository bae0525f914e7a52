"""Streamlit front-end rendering a :class:`TableController`."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
import streamlit as st

from gridview.engine import (
    AggregateOp,
    ConfigError,
    DataRowEntry,
    FilterOp,
    FilterValidationError,
    GroupNode,
    ManualGroupNode,
    Notice,
    NoticeLevel,
    TableController,
    build_store,
    load_definition,
    load_rows,
)

st.set_page_config(page_title="gridview", layout="wide")

DEFAULT_CONFIG = Path(__file__).resolve().with_name("config_example.yaml")
INDENT = " "


def _controller(config_path: Path) -> TableController:
    key = f"controller:{config_path}"
    if key not in st.session_state:
        definition = load_definition(config_path)
        rows = load_rows(definition)
        store = build_store(definition.storage, session_state=st.session_state)
        st.session_state[key] = TableController.from_definition(
            definition, rows, store=store, on_notice=_queue_notice
        )
    return st.session_state[key]


def _queue_notice(notice: Notice) -> None:
    st.session_state.setdefault("notices", []).append(notice)


def _flush_notices() -> None:
    for notice in st.session_state.pop("notices", []):
        if notice.level is NoticeLevel.ERROR:
            st.error(notice.message)
        elif notice.level is NoticeLevel.WARNING:
            st.warning(notice.message)
        else:
            st.info(notice.message)


def display_frame(controller: TableController) -> pd.DataFrame:
    """Flatten the display sequence into a frame of formatted cells."""

    columns = controller.displayed_columns()
    records: List[Dict[str, Any]] = []
    for entry in controller.display_sequence:
        record: Dict[str, Any] = {"": ""}
        if isinstance(entry, GroupNode):
            marker = "▾" if entry.expanded else "▸"
            title = controller.column(entry.group_column_key).title
            record[""] = (
                f"{INDENT * entry.level}{marker} {title}: {entry.group_value} "
                f"({entry.item_count}) total {entry.aggregate_total:,.2f}"
            )
        elif isinstance(entry, ManualGroupNode):
            record[""] = f"■ {entry.name} ({entry.item_count})"
        elif isinstance(entry, DataRowEntry):
            record[""] = INDENT * entry.level
            for spec in columns:
                record[spec.title] = controller.format_cell(spec.key, entry.row)
        records.append(record)
    return pd.DataFrame(records, columns=[""] + [spec.title for spec in columns])


def render_sidebar(controller: TableController) -> None:
    keys = [spec.key for spec in controller.columns]
    titles = {spec.key: spec.title for spec in controller.columns}

    st.sidebar.subheader("Sort")
    sort_key = st.sidebar.selectbox("Column", keys, format_func=titles.get, key="sort_key")
    if st.sidebar.button("Sort / toggle direction"):
        controller.sort_by(sort_key)

    st.sidebar.subheader("Filter")
    numeric_keys = [spec.key for spec in controller.columns if spec.supports_aggregation]
    with st.sidebar.form("filter_form"):
        filter_key = st.selectbox("Column", numeric_keys, format_func=titles.get)
        filter_op = st.selectbox("Operator", [op.value for op in FilterOp])
        filter_value = st.text_input("Value")
        if st.form_submit_button("Apply filter"):
            try:
                controller.apply_filter(filter_key, filter_op, filter_value)
            except FilterValidationError as exc:
                st.error(str(exc))
    if controller.filters and st.sidebar.button("Clear filters"):
        controller.clear_filters()

    if controller.features.enable_grouping:
        st.sidebar.subheader("Grouping")
        group_key = st.sidebar.selectbox("Group column", keys, format_func=titles.get, key="group_key")
        left, right = st.sidebar.columns(2)
        if left.button("Group"):
            controller.group_by_column(group_key)
        if right.button("Ungroup"):
            controller.ungroup_by_column(group_key)
        left, right = st.sidebar.columns(2)
        if left.button("Expand all"):
            controller.expand_all_groups()
        if right.button("Collapse all"):
            controller.collapse_all_groups()

    if controller.features.enable_aggregation and numeric_keys:
        st.sidebar.subheader("Aggregation")
        agg_key = st.sidebar.selectbox("Numeric column", numeric_keys, format_func=titles.get, key="agg_key")
        agg_op = st.sidebar.radio("Operation", [op.value for op in AggregateOp], horizontal=True)
        if st.sidebar.button("Aggregate"):
            controller.aggregate_column(agg_key, agg_op)

    st.sidebar.subheader("Columns")
    visible = st.sidebar.multiselect(
        "Visible columns", keys, default=controller.layout.visible, format_func=titles.get
    )
    if visible != controller.layout.visible and st.sidebar.button("Apply columns"):
        controller.update_columns(visible, controller.layout.order)

    st.sidebar.subheader("Views")
    view_name = st.sidebar.text_input("View name")
    if st.sidebar.button("Save current view"):
        controller.save_view(view_name)
    views = {view.id: view.name for view in controller.saved_views}
    if views:
        view_id = st.sidebar.selectbox("Saved views", list(views), format_func=views.get)
        left, right = st.sidebar.columns(2)
        if left.button("Load"):
            controller.load_view(view_id)
        if right.button("Delete"):
            controller.delete_view(view_id)
    if st.sidebar.button("Reset to default"):
        controller.reset_to_default()

    st.sidebar.subheader("Selection")
    left, right = st.sidebar.columns(2)
    if left.button("Select all"):
        controller.select_all(True)
    if right.button("Clear"):
        controller.select_all(False)


def render_group_toggles(controller: TableController) -> None:
    headers = [entry for entry in controller.display_sequence if isinstance(entry, GroupNode)]
    if not headers:
        return
    labels = {entry.id: f"{INDENT * entry.level}{entry.group_value} ({entry.item_count})" for entry in headers}
    group_id = st.selectbox("Group", list(labels), format_func=labels.get)
    if st.button("Expand / collapse"):
        controller.toggle_group(group_id)


def main() -> None:
    st.title("gridview")
    config_path_str = st.sidebar.text_input(
        "Table definition", value=os.environ.get("GRIDVIEW_CONFIG", str(DEFAULT_CONFIG))
    )
    config_path = Path(config_path_str).expanduser()
    if not config_path.exists():
        st.error(f"Table definition not found: {config_path}")
        return
    try:
        controller = _controller(config_path)
    except (ConfigError, FileNotFoundError) as exc:
        st.error(f"Table could not be loaded: {exc}")
        return

    render_sidebar(controller)
    _flush_notices()

    st.caption(
        f"Showing {len(controller.processed_rows)} of {len(controller.rows)} records"
        + (f" ({len(controller.selected_rows)} selected)" if controller.selected_rows else "")
    )
    if controller.aggregations:
        cols = st.columns(len(controller.aggregations))
        for col, (key, result) in zip(cols, controller.aggregations.items()):
            col.metric(f"{result.op.value.title()} {controller.column(key).title}", result.formatted_value)

    render_group_toggles(controller)
    st.dataframe(display_frame(controller), use_container_width=True, hide_index=True)

    export = controller.export("filtered")
    st.download_button(
        "Export (CSV)",
        data=export.to_frame().to_csv(index=False).encode("utf-8"),
        file_name=f"{controller.title}_export.csv",
        mime="text/csv",
        disabled=export.is_empty,
    )


if __name__ == "__main__":
    main()
