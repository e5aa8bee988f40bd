from __future__ import annotations

import json
import zipfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass
from io import BytesIO
from pathlib import Path

import streamlit as st

from invoice_normalizer.config import get_settings
from invoice_normalizer.exceptions import InvoiceProcessingError
from invoice_normalizer.extract import SUPPORTED_SUFFIXES, source_from_upload
from invoice_normalizer.pipeline import process_invoice


@dataclass(frozen=True)
class _UiInvoice:
    filename: str
    result: dict
    error: str | None = None


def _result_metrics(result: dict) -> dict:
    items = result.get("items") or []
    flagged = sum(1 for li in items if li.get("warnings") or li.get("marginWarning"))
    return {
        "line_items": len(items),
        "flagged_lines": flagged,
        "grand_total": result.get("grandTotal"),
        "invoice_total": result.get("invoiceTotal"),
    }


def _zip_results(invoices: list[_UiInvoice]) -> bytes:
    buf = BytesIO()
    with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for inv in invoices:
            if inv.error:
                continue
            stem = Path(inv.filename).stem
            zf.writestr(
                f"{stem}_normalized.json",
                json.dumps(inv.result, indent=2, ensure_ascii=False),
            )
    return buf.getvalue()


def _process_upload(up) -> _UiInvoice:
    try:
        source = source_from_upload(up.getvalue(), up.name)
        r = process_invoice(source)
    except InvoiceProcessingError as e:
        return _UiInvoice(filename=up.name, result={}, error=str(e))
    return _UiInvoice(filename=up.name, result=r.to_output())


st.set_page_config(
    page_title="Invoice Normalizer",
    page_icon="🧾",
    layout="wide",
)

st.title("Invoice Line Normalization")
st.caption("Upload invoice photos or PDFs → extract lines → normalize quantities and case packs → reconcile totals.")

with st.sidebar:
    st.header("Settings")
    st.write("Runs the same pipeline as `run.py`, without writing to `./output` unless you download results.")

    st.subheader("Performance")
    num_workers = st.slider("Parallel workers", min_value=1, max_value=4, value=1, help="Invoices processed in parallel (1-4)")

    st.divider()
    st.subheader("Extraction key status")
    if get_settings().has_api_key:
        st.success("API key detected in environment.")
    else:
        st.warning("No `OPENROUTER_API_KEY` / `OPENAI_API_KEY` found. Extraction will fail.")

st.divider()

uploads = st.file_uploader(
    "Upload one or more invoice images or PDFs",
    type=sorted(s.lstrip(".") for s in SUPPORTED_SUFFIXES),
    accept_multiple_files=True,
)

col_a, col_b, _ = st.columns([1, 1, 2])
with col_a:
    run_btn = st.button("Process invoices", type="primary", disabled=not uploads)
with col_b:
    clear_btn = st.button("Clear results")

if clear_btn:
    st.session_state.pop("ui_results", None)
    st.rerun()

if run_btn and uploads:
    with st.spinner(f"Processing {len(uploads)} invoice(s) with {num_workers} worker(s)…"):
        if num_workers == 1:
            ui_results = [_process_upload(up) for up in uploads]
        else:
            results_dict: dict[int, _UiInvoice] = {}
            with ThreadPoolExecutor(max_workers=num_workers) as executor:
                future_to_idx = {executor.submit(_process_upload, up): i for i, up in enumerate(uploads)}
                for future in as_completed(future_to_idx):
                    results_dict[future_to_idx[future]] = future.result()
            ui_results = [results_dict[i] for i in sorted(results_dict)]

    st.session_state["ui_results"] = [asdict(x) for x in ui_results]

raw = st.session_state.get("ui_results") or []
results: list[_UiInvoice] = [_UiInvoice(**x) for x in raw]

if not results:
    st.info("Upload invoices and click **Process invoices** to see results.")
    st.stop()

st.download_button(
    "Download all JSON (zip)",
    data=_zip_results(results),
    file_name="invoice_normalized_outputs.zip",
    mime="application/zip",
)

tabs = st.tabs([f"{i + 1}. {r.filename}" for i, r in enumerate(results)])
for tab, inv in zip(tabs, results):
    with tab:
        if inv.error:
            st.error(f"Extraction failed: {inv.error}")
            continue

        metrics = _result_metrics(inv.result)
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Vendor", inv.result.get("vendorName") or "—")
        c2.metric("Line items", metrics["line_items"])
        c3.metric("Grand total", f"{metrics['grand_total']:.2f}")
        c4.metric("Printed total", f"{metrics['invoice_total']:.2f}" if metrics["invoice_total"] is not None else "—")

        if inv.result.get("totalMatches"):
            st.success("Computed total matches the printed total.")
        else:
            st.warning("Needs review: " + (", ".join(inv.result.get("warnings") or []) or "total mismatch"))

        st.subheader("Line items")
        only_flagged = st.checkbox("Show only flagged lines", value=False, key=f"flag_{inv.filename}")
        items = inv.result.get("items") or []
        if only_flagged:
            items = [li for li in items if li.get("warnings") or li.get("marginWarning")]
        st.dataframe(items, use_container_width=True, hide_index=True)

        st.subheader("Normalized JSON")
        st.json(inv.result)

        st.download_button(
            "Download this invoice JSON",
            data=json.dumps(inv.result, indent=2, ensure_ascii=False).encode("utf-8"),
            file_name=f"{Path(inv.filename).stem}_normalized.json",
            mime="application/json",
            key=f"dl_{inv.filename}",
        )
